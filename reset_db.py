from flask_migrate import upgrade

from app import app, db
from init_db import ensure_admin


def reset_database():
    """Drop every table, alembic's version table included, and rebuild through the migrations."""
    with app.app_context():
        print(f"Dropping all tables in {db.engine.url.render_as_string(hide_password=True)}...")
        db.drop_all()
        db.session.execute(db.text('DROP TABLE IF EXISTS alembic_version'))
        db.session.commit()

        print("Rebuilding schema from migrations...")
        upgrade()

        admin, _ = ensure_admin()
        print(f"\nDatabase reset. Admin user: {admin.email}")


if __name__ == '__main__':
    answer = input("This deletes ALL data, trust ledgers included. Type 'reset' to continue: ")
    if answer.strip() == 'reset':
        reset_database()
    else:
        print("Aborted.")
