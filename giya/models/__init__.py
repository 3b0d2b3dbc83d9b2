"""
Database models for the Giya loyalty platform.
"""
from .user import User, UserRole
from .business import (
    Business,
    BusinessApprovalLog,
    BusinessApprovalStatus,
    ApprovalAction,
)
from .customer import Customer, Influencer
from .points import PointsTransaction, PointsSource
from .punch_card import PunchCard, PunchCardCustomer, PunchCardPunch
from .reward import Reward, Redemption, RedemptionStatus
from .deal import Deal, DealUsage, DealType, ScheduleType
from .curated_list import CuratedList, CuratedListItem
from .affiliate import AffiliateLink, AffiliateConversion, ConversionType
from .receipt import Receipt, ReceiptStatus
from .notification import Notification, NotificationType

__all__ = [
    'User',
    'UserRole',
    'Business',
    'BusinessApprovalLog',
    'BusinessApprovalStatus',
    'ApprovalAction',
    'Customer',
    'Influencer',
    'PointsTransaction',
    'PointsSource',
    'PunchCard',
    'PunchCardCustomer',
    'PunchCardPunch',
    'Reward',
    'Redemption',
    'RedemptionStatus',
    'Deal',
    'DealUsage',
    'DealType',
    'ScheduleType',
    'CuratedList',
    'CuratedListItem',
    'AffiliateLink',
    'AffiliateConversion',
    'ConversionType',
    'Receipt',
    'ReceiptStatus',
    'Notification',
    'NotificationType',
]
