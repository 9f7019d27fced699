import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))

class Config:
    # Secrets come from .env only
    SECRET_KEY = os.environ.get('SECRET_KEY')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'portal.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens are HS256 JWTs signed with SECRET_KEY, lifetime in seconds
    TOKEN_MAX_AGE = int(os.environ.get('TOKEN_MAX_AGE') or 7 * 24 * 3600)

    # The API is token based, so form CSRF tokens are not used
    WTF_CSRF_ENABLED = False
    MAX_CONTENT_LENGTH = 20 * 1024 * 1024

    # 'local' keeps files under UPLOAD_FOLDER, 's3' pushes them to a bucket
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND') or 'local'
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'uploads')
    S3_BUCKET_NAME = os.environ.get('S3_BUCKET_NAME')
    AWS_REGION = os.environ.get('AWS_REGION') or 'eu-west-1'
    AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')

    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_TO_STDOUT = os.environ.get('LOG_TO_STDOUT')

    SEED_DATA_DIR = os.environ.get('SEED_DATA_DIR') or os.path.join(basedir, 'seed_data')

    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 50


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    STORAGE_BACKEND = 'local'
