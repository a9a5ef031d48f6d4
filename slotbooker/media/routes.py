from flask import jsonify, send_from_directory

from ..photos import get_photo_store
from . import media_bp


@media_bp.get("/img-list")
def img_list():
    return jsonify(get_photo_store().list_images())


@media_bp.get("/img/<path:filename>")
def image(filename):
    return send_from_directory(get_photo_store().directory, filename)
