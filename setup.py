from setuptools import setup, find_packages

setup(
    name="lexledger",
    version="0.1",
    packages=find_packages(exclude=['tests', 'tests.*', 'migrations', 'migrations.*']),
    install_requires=[
        'flask',
        'python-dotenv',
        'flask-sqlalchemy',
        'flask-migrate',
        'flask-login',
        'psycopg2-binary',
        'python-dateutil',
        'werkzeug',
    ],
    extras_require={
        'test': ['pytest'],
    },
    python_requires='>=3.8',
)
