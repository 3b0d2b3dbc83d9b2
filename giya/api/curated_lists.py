"""
Public curated lists (home screen featured businesses).
"""
from flask import Blueprint, jsonify

from ..middleware import ratelimit_general
from ..services.curated_list_service import CuratedListService

curated_lists_bp = Blueprint('curated_lists', __name__)


@curated_lists_bp.route('', methods=['GET'])
@ratelimit_general
def public_curated_lists():
    return jsonify({'curated_lists': CuratedListService.public_lists()})
