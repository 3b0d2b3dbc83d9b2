"""
Business logic services for the Giya loyalty platform.
"""
from .affiliate_service import AffiliateService
from .approval_service import ApprovalService
from .auth_service import AuthService
from .curated_list_service import CuratedListService
from .deal_service import DealService
from .maintenance_service import MaintenanceService
from .notification_service import NotificationService
from .points_service import PointsService
from .profile_service import ProfileService
from .punch_card_service import PunchCardService
from .receipt_service import ReceiptService
from .reward_service import RewardService

__all__ = [
    'AffiliateService',
    'ApprovalService',
    'AuthService',
    'CuratedListService',
    'DealService',
    'MaintenanceService',
    'NotificationService',
    'PointsService',
    'ProfileService',
    'PunchCardService',
    'ReceiptService',
    'RewardService',
]
