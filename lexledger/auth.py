from functools import wraps

from flask import Blueprint, abort, current_app, g, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from . import login_manager
from .models import ClientUser, PortalActivity, User, db

bp = Blueprint('auth', __name__)

__all__ = ['bp', 'login_required', 'portal_login_required', 'current_user_id', 'log_portal_activity']


@login_manager.user_loader
def load_user(user_id):
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Not authenticated'}), 401


def current_user_id():
    return current_user.id if current_user.is_authenticated else None


# -------- Client Portal auth helpers -------- #
def _load_portal_user():
    cu_id = session.get('client_user_id')
    if not cu_id:
        return None
    cu = db.session.get(ClientUser, cu_id)
    if cu is None or not cu.portal_access:
        session.pop('client_user_id', None)
        return None
    return cu


def portal_login_required(f):
    """Require a portal session; exposes g.portal_client = {client_id, attorney_user_id}."""
    @wraps(f)
    def decorated(*args, **kwargs):
        cu = _load_portal_user()
        if cu is None:
            abort(401)
        g.portal_client = {
            'client_id': cu.client_id,
            'attorney_user_id': cu.client.user_id if cu.client else None,
        }
        return f(*args, **kwargs)
    return decorated


def log_portal_activity(client_id, action, details=None):
    """Append to the portal activity log. A logging failure never fails the request."""
    try:
        db.session.add(PortalActivity(
            client_id=client_id,
            action=action,
            details=details or {},
            ip_address=request.remote_addr,
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to log portal activity '{action}': {str(e)}")


# -------- Staff session -------- #
@bp.route('/api/auth/login', methods=['POST'])
def api_login():
    data = request.get_json(silent=True) or {}
    email = str(data.get('email', '')).strip().lower()
    password = str(data.get('password', ''))
    if not email or not password:
        return jsonify({'ok': False, 'error': 'Missing credentials'}), 400
    user = User.query.filter(db.func.lower(User.email) == email).first()
    if user is None or not user.is_active or not user.check_password(password):
        current_app.logger.info(f"Staff login failed for {email}")
        return jsonify({'ok': False, 'error': 'Invalid credentials'}), 401
    login_user(user)
    session.permanent = True
    return jsonify({'ok': True, 'user': user.to_dict()})


@bp.route('/api/auth/logout', methods=['POST'])
@login_required
def api_logout():
    logout_user()
    return jsonify({'ok': True})


@bp.route('/api/session', methods=['GET'])
def api_session_status():
    if current_user.is_authenticated:
        return ('', 204)
    return ('', 401)


# -------- Portal session -------- #
@bp.route('/api/portal/login', methods=['POST'])
def api_portal_login():
    data = request.get_json(silent=True) or {}
    email = str(data.get('email', '')).strip().lower()
    password = str(data.get('password', ''))
    if not email or not password:
        return jsonify({'ok': False, 'error': 'Missing credentials'}), 400

    cu = ClientUser.query.filter(db.func.lower(ClientUser.email) == email).first()
    if cu is None:
        log_portal_activity(None, 'login_failed', {'email': email, 'reason': 'not_found'})
        return jsonify({'ok': False, 'error': 'Invalid credentials'}), 401
    if not cu.portal_access:
        return jsonify({'ok': False, 'error': 'Portal access disabled'}), 403
    if cu.is_locked():
        return jsonify({'ok': False, 'error': 'Account temporarily locked'}), 423

    if not cu.check_password(password):
        cu.record_failed_login(current_app.config['PORTAL_MAX_FAILED_LOGINS'],
                               current_app.config['PORTAL_LOCKOUT_MINUTES'])
        db.session.commit()
        log_portal_activity(cu.client_id, 'login_failed', {'reason': 'invalid_password'})
        return jsonify({'ok': False, 'error': 'Invalid credentials'}), 401

    cu.record_successful_login()
    db.session.commit()
    session['client_user_id'] = cu.id
    session.permanent = True
    log_portal_activity(cu.client_id, 'login_success')
    return jsonify({'ok': True})


@bp.route('/api/portal/logout', methods=['POST'])
def api_portal_logout():
    cu = _load_portal_user()
    if cu is not None:
        log_portal_activity(cu.client_id, 'logout')
    session.pop('client_user_id', None)
    return jsonify({'ok': True})
