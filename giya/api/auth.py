"""
Authentication API endpoints.

Handles:
- Signup (customer, business, influencer when affiliates are enabled)
- Login / logout (session token as cookie and in the response body)
- Current user
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..middleware import require_auth, issue_session_token, ratelimit_auth
from ..services.auth_service import AuthService

auth_bp = Blueprint('auth', __name__)

service = AuthService()


def _with_session_cookie(response, token: str):
    response.set_cookie(
        current_app.config['SESSION_COOKIE_NAME'],
        token,
        max_age=current_app.config['SESSION_TOKEN_TTL_HOURS'] * 3600,
        httponly=True,
        secure=not current_app.debug and not current_app.testing,
        samesite='Lax',
    )
    return response


@auth_bp.route('/signup', methods=['POST'])
@ratelimit_auth
def signup():
    """
    JSON body:
        email, password, confirm_password, role (customer | business | influencer)
        profile: role-specific fields
            customer:   full_name
            business:   business_name, business_category, address,
                        points_per_currency?, gmaps_link?, description?
            influencer: full_name, *_handle?
    """
    data = request.json or {}
    user, profile = service.signup(data)
    token = issue_session_token(user)

    response = jsonify({
        'user': user.to_dict(),
        'profile': profile.to_dict(),
        'token': token,
    })
    response.status_code = 201
    return _with_session_cookie(response, token)


@auth_bp.route('/login', methods=['POST'])
@ratelimit_auth
def login():
    data = request.json or {}
    user = service.login(data.get('email'), data.get('password'))
    token = issue_session_token(user)

    body = {'user': user.to_dict(include_profile=True), 'token': token}
    if user.business is not None and not user.business.is_approved:
        body['approval_status'] = user.business.approval_status
    current_app.logger.info(f'User {user.id} logged in')
    return _with_session_cookie(jsonify(body), token)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    response = jsonify({'success': True})
    response.delete_cookie(current_app.config['SESSION_COOKIE_NAME'])
    return response


@auth_bp.route('/me', methods=['GET'])
@require_auth
def me():
    return jsonify({'user': g.user.to_dict(include_profile=True)})
