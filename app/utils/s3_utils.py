import boto3
import os
import uuid
from botocore.exceptions import NoCredentialsError
from flask import current_app, g, request
from urllib.parse import urlparse
from werkzeug.utils import secure_filename

UPLOADS_KEY = "uploaded_images"


def upload_file_to_s3(file, filename, bucket_name):
    s3 = boto3.client(
        "s3",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name=os.getenv("AWS_REGION"),
    )
    try:
        s3.upload_fileobj(file, bucket_name, filename, ExtraArgs={"ACL": "public-read"})
        base_url = current_app.config.get("S3_BASE_URL") or os.getenv("S3_BASE_URL")
        return f"{base_url}/{filename}"

    except NoCredentialsError:
        raise Exception("AWS credentials not found. Check environment variables.")


def delete_file_from_s3(image_url, bucket_name):
    s3 = boto3.client(
        "s3",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name=os.getenv("AWS_REGION"),
    )

    try:
        parsed = urlparse(image_url)
        key = parsed.path.lstrip("/")

        s3.delete_object(Bucket=bucket_name, Key=key)
        return True

    except NoCredentialsError:
        raise Exception("AWS credentials not found. Check environment variables.")
    except Exception as e:
        current_app.logger.warning(f"Error deleting file from S3: {e}")
        return False


def store_image(file, folder):
    """Upload an incoming image under ``folder/`` and return its public URL."""
    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not bucket_name:
        raise Exception("S3_BUCKET_NAME is not configured")

    filename = secure_filename(file.filename or "image")
    key = f"{folder}/{uuid.uuid4().hex}_{filename}"
    url = upload_file_to_s3(file, key, bucket_name)

    # Remembered until the request ends so a failed request can remove it
    g.setdefault(UPLOADS_KEY, []).append(url)
    return url


def image_from_request(field, folder):
    """
    Resolve an image field of the current request.

    A multipart file is uploaded to S3; otherwise an already stored reference
    (URL or key) sent in the form/JSON body is used as is.
    """
    file = request.files.get(field)
    if file and file.filename:
        return store_image(file, folder)

    if request.form and request.form.get(field):
        return request.form.get(field)

    data = request.get_json(silent=True) or {}
    return data.get(field) or None


def discard_images(urls):
    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not bucket_name:
        return

    for url in urls:
        if url and url.startswith("http"):
            delete_file_from_s3(url, bucket_name)


def discard_request_uploads():
    """Delete every object uploaded while handling the current request."""
    uploads = g.pop(UPLOADS_KEY, [])
    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not uploads or not bucket_name:
        return

    for url in uploads:
        try:
            delete_file_from_s3(url, bucket_name)
        except Exception as e:
            current_app.logger.warning(f"Could not remove orphaned upload {url}: {e}")
    current_app.logger.info(f"Removed {len(uploads)} upload(s) left by a failed request")


def track_uploads(app):
    @app.teardown_request
    def forget_uploads(exc):
        g.pop(UPLOADS_KEY, None)
