# FILE: portal/storage.py
import os
import uuid

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app, url_for
from werkzeug.utils import secure_filename

LOCAL_URL_PREFIX = '/uploads/'


class StorageError(Exception):
    pass


def _object_name(filename, folder):
    name = secure_filename(filename or '') or 'upload'
    return f"{folder}/{uuid.uuid4().hex}_{name}"


def _s3_client():
    config = current_app.config
    return boto3.client(
        's3',
        aws_access_key_id=config.get('AWS_ACCESS_KEY_ID'),
        aws_secret_access_key=config.get('AWS_SECRET_ACCESS_KEY'),
        region_name=config.get('AWS_REGION'),
    )


def _s3_url(object_name):
    config = current_app.config
    return f"https://{config['S3_BUCKET_NAME']}.s3.{config['AWS_REGION']}.amazonaws.com/{object_name}"


def save_upload(file_storage, folder):
    """
    Stores an uploaded werkzeug FileStorage under `folder` and returns the
    URL clients use to fetch it.
    """
    object_name = _object_name(file_storage.filename, folder)
    backend = current_app.config.get('STORAGE_BACKEND', 'local')

    if backend == 's3':
        params = {
            'Bucket': current_app.config['S3_BUCKET_NAME'],
            'Key': object_name,
            'Body': file_storage.stream.read(),
        }
        if file_storage.mimetype:
            params['ContentType'] = file_storage.mimetype
        try:
            _s3_client().put_object(**params)
        except (BotoCoreError, ClientError) as e:
            current_app.logger.error(f"S3 upload of {object_name} failed: {e}", exc_info=True)
            raise StorageError('File upload failed.') from e
        current_app.logger.info(f"Uploaded {object_name} to S3")
        return _s3_url(object_name)

    target = os.path.join(current_app.config['UPLOAD_FOLDER'], *object_name.split('/'))
    os.makedirs(os.path.dirname(target), exist_ok=True)
    file_storage.save(target)
    current_app.logger.info(f"Saved upload to {target}")
    return url_for('main.uploaded_file', filename=object_name)


def delete_upload(url):
    """Removes a previously stored file. Missing files are ignored."""
    if not url:
        return
    backend = current_app.config.get('STORAGE_BACKEND', 'local')

    if backend == 's3':
        prefix = _s3_url('')
        if not url.startswith(prefix):
            return
        try:
            _s3_client().delete_object(Bucket=current_app.config['S3_BUCKET_NAME'], Key=url[len(prefix):])
        except (BotoCoreError, ClientError) as e:
            current_app.logger.warning(f"Could not delete {url} from S3: {e}")
        return

    if not url.startswith(LOCAL_URL_PREFIX):
        return
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], *url[len(LOCAL_URL_PREFIX):].split('/'))
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as oe:
        current_app.logger.warning(f"Could not delete stored file {path}: {oe}")
