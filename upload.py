from flask import request, current_app
from flask_restful import Resource
from flask_jwt_extended import jwt_required
import cloudinary.uploader
import os
import logging

logger = logging.getLogger(__name__)


def allowed_file(filename):
    allowed = current_app.config.get("ALLOWED_EXTENSIONS", {'png', 'jpg', 'jpeg', 'gif', 'webp'})
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed


def file_size(file):
    stream = file.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


class ImageUploadResource(Resource):

    @jwt_required()
    def post(self):
        """Upload an image (multipart field 'file') to Cloudinary."""
        file = request.files.get('file')
        if not file or not file.filename:
            return {"message": "No file provided"}, 400

        if not allowed_file(file.filename):
            return {"message": "File type not allowed. Use png, jpg, jpeg, gif or webp"}, 400

        max_size = current_app.config.get("MAX_IMAGE_SIZE", 5 * 1024 * 1024)
        if file_size(file) > max_size:
            return {"message": f"File too large. Maximum size is {max_size // (1024 * 1024)}MB"}, 400

        try:
            upload_result = cloudinary.uploader.upload(
                file,
                folder=current_app.config.get("CLOUDINARY_FOLDER", "culture_connect"),
                resource_type="image"
            )
        except Exception as e:
            logger.error(f"Error uploading image: {str(e)}")
            return {"message": "Failed to upload image"}, 502

        return {
            "url": upload_result.get("secure_url"),
            "public_id": upload_result.get("public_id")
        }, 201


def register_upload_resources(api):
    api.add_resource(ImageUploadResource, "/api/upload/image")
