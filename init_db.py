import os

from flask_migrate import upgrade

from app import app, db
from lexledger.models import User

ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@lawfirm.com')
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD', 'admin123')


def ensure_admin(email=ADMIN_EMAIL, password=ADMIN_PASSWORD):
    """Return the admin staff user, creating it on first run. Needs an app context."""
    admin = User.query.filter(db.func.lower(User.email) == email.lower()).first()
    if admin is not None:
        return admin, False
    admin = User(email=email.lower(), first_name='Admin', last_name='User', role='admin', is_active=True)
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    return admin, True


def init_db():
    with app.app_context():
        print("Upgrading schema to the latest migration...")
        upgrade()

        admin, created = ensure_admin()
        if created:
            print(f"Admin user {admin.email} created (password from ADMIN_PASSWORD, default 'admin123')")
        else:
            print(f"Admin user {admin.email} already exists")


if __name__ == '__main__':
    init_db()
    print("Database initialization complete!")
