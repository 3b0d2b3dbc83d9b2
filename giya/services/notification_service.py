"""
Notification Service for Giya.

Creates in-app notification rows and, when an FCM server key is configured,
pushes them to the customer's device.

Rows are added to the caller's session so they commit (or roll back)
together with the change they describe. Push delivery is deferred until
the caller invokes deliver_pending() after its commit.

Configuration:
- FCM_SERVER_KEY: Firebase Cloud Messaging server key (push disabled if empty)
- FCM_SEND_URL: legacy HTTP send endpoint
- FCM_PUSH_TIMEOUT, FCM_PUSH_MAX_RETRIES: per-push HTTP timeout and retries
- FCM_DELIVERY_BUDGET_SECONDS: time limit for one deliver_pending() call
"""
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from ..extensions import db
from ..models import (
    Customer,
    Notification,
    NotificationType,
    User,
    UserRole,
)
from ..utils.exceptions import NotFoundError, ValidationError
from ..utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

LIST_LIMIT = 50
SEND_TARGET_TYPES = ('user', 'users', 'topic')


class NotificationService:
    """
    Usage:
        notifications = NotificationService()
        notifications.points_awarded(customer, 12, business_name)
        db.session.commit()
        notifications.deliver_pending()
    """

    def __init__(self):
        self._pending_push: List[Notification] = []

    # ==================== Creation ====================

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: str = NotificationType.GENERAL.value,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=notification_type,
            data=data,
        )
        db.session.add(notification)
        self._pending_push.append(notification)
        return notification

    def deliver_pending(self) -> int:
        """
        Push every notification created since the last call. Returns pushes sent.

        Runs inside the request, so it stops once FCM_DELIVERY_BUDGET_SECONDS
        have passed; the rest stay in the in-app inbox only.
        """
        pending, self._pending_push = self._pending_push, []
        budget = current_app.config.get('FCM_DELIVERY_BUDGET_SECONDS', 20)
        started = time.monotonic()
        sent = 0
        for index, notification in enumerate(pending):
            if time.monotonic() - started > budget:
                logger.warning(
                    f'Push budget of {budget}s spent, {len(pending) - index} notifications not pushed'
                )
                break
            customer = Customer.query.filter_by(user_id=notification.user_id).first()
            if customer and customer.fcm_token:
                if send_push(customer.fcm_token, notification.title, notification.message,
                             notification.data):
                    sent += 1
        return sent

    # ==================== Helper messages ====================

    def receipt_processed(self, customer: Customer, points: int, business_name: str, receipt_id: int):
        return self.notify(
            customer.user_id,
            'Receipt Processed',
            f'Your receipt from {business_name} was processed. You earned {points} points!',
            NotificationType.RECEIPT_PROCESSED.value,
            {'receipt_id': receipt_id, 'points': points},
        )

    def points_awarded(self, customer: Customer, points: int, business_name: str):
        return self.notify(
            customer.user_id,
            'Points Awarded',
            f'You earned {points} points at {business_name}.',
            NotificationType.POINTS_AWARDED.value,
            {'points': points},
        )

    def reward_redeemed(self, customer: Customer, reward_name: str, redemption_id: int):
        return self.notify(
            customer.user_id,
            'Reward Redeemed',
            f'Your reward "{reward_name}" has been validated. Enjoy!',
            NotificationType.REWARD_REDEEMED.value,
            {'redemption_id': redemption_id},
        )

    def deal_redeemed(self, customer: Customer, deal_title: str, deal_id: int):
        return self.notify(
            customer.user_id,
            'Deal Redeemed',
            f'You redeemed "{deal_title}".',
            NotificationType.DEAL_REDEEMED.value,
            {'deal_id': deal_id},
        )

    def punch_card_completed(self, customer: Customer, card_title: str, reward_description: str,
                             punch_card_id: int):
        return self.notify(
            customer.user_id,
            'Punch Card Completed!',
            f'You completed "{card_title}". Reward unlocked: {reward_description}',
            NotificationType.PUNCH_CARD_COMPLETED.value,
            {'punch_card_id': punch_card_id},
        )

    def business_status_changed(self, business, reason: Optional[str] = None):
        messages = {
            'approved': 'Your business has been approved. You can now access your dashboard.',
            'rejected': 'Your business application was rejected.',
            'suspended': 'Your business account has been suspended.',
        }
        message = messages.get(business.approval_status, f'Your business status is now {business.approval_status}.')
        if reason:
            message = f'{message} Reason: {reason}'
        return self.notify(
            business.user_id,
            'Business Status Update',
            message,
            NotificationType.BUSINESS_STATUS.value,
            {'business_id': business.id, 'approval_status': business.approval_status},
        )

    def new_business_signup(self, business) -> int:
        admins = User.query.filter_by(role=UserRole.ADMIN.value, is_active=True).all()
        for admin in admins:
            self.notify(
                admin.id,
                'New Business Signup',
                f'{business.business_name} is waiting for approval.',
                NotificationType.BUSINESS_SIGNUP.value,
                {'business_id': business.id},
            )
        return len(admins)

    # ==================== Inbox ====================

    @staticmethod
    def list_for_user(user_id: int, limit: int = LIST_LIMIT) -> Dict[str, Any]:
        notifications = Notification.query.filter_by(user_id=user_id).order_by(
            Notification.created_at.desc(), Notification.id.desc()
        ).limit(limit).all()
        unread_count = Notification.query.filter_by(user_id=user_id, is_read=False).count()
        return {
            'notifications': [n.to_dict() for n in notifications],
            'unread_count': unread_count,
        }

    @staticmethod
    def mark_read(user_id: int, notification_ids: List[int]) -> int:
        if not isinstance(notification_ids, list):
            raise ValidationError('notification_ids must be an array', field='notification_ids')
        if not notification_ids:
            return 0
        updated = Notification.query.filter(
            Notification.user_id == user_id,
            Notification.id.in_(notification_ids),
            Notification.is_read.is_(False),
        ).update(
            {Notification.is_read: True, Notification.read_at: datetime.utcnow()},
            synchronize_session=False,
        )
        db.session.commit()
        return updated

    @staticmethod
    def delete(user_id: int, notification_id: int) -> None:
        notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if not notification:
            raise NotFoundError('Notification', notification_id)
        db.session.delete(notification)
        db.session.commit()

    # ==================== Admin broadcast ====================

    def send(self, target_type: str, target: Any, title: str, message: str,
             data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a notification to one user, a list of users, or every user of a role.

        Args:
            target_type: 'user' | 'users' | 'topic'
            target: user id, list of user ids, or role name
        """
        if not title or not message:
            raise ValidationError('Title and message are required')
        if target_type not in SEND_TARGET_TYPES:
            raise ValidationError(f'type must be one of: {", ".join(SEND_TARGET_TYPES)}', field='type')

        if target_type == 'user':
            try:
                user_ids = [int(target)]
            except (TypeError, ValueError):
                raise ValidationError('target must be a user id', field='target')
        elif target_type == 'users':
            if not isinstance(target, list) or not target:
                raise ValidationError('target must be a non-empty array of user ids', field='target')
            try:
                user_ids = [int(t) for t in target]
            except (TypeError, ValueError):
                raise ValidationError('target must be a non-empty array of user ids', field='target')
        else:
            roles = [r.value for r in UserRole]
            if target not in roles:
                raise ValidationError(f'topic must be one of: {", ".join(roles)}', field='target')
            user_ids = [u.id for u in User.query.filter_by(role=target, is_active=True).all()]

        existing = {u.id for u in User.query.filter(User.id.in_(user_ids)).all()} if user_ids else set()
        for user_id in user_ids:
            if user_id in existing:
                self.notify(user_id, title, message, NotificationType.GENERAL.value, data)
        db.session.commit()

        pushed = self.deliver_pending()
        logger.info(f'Notification "{title}" sent to {len(existing)} users ({pushed} pushes)')
        return {'sent': len(existing), 'pushed': pushed}


def send_push(token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> bool:
    """
    Push one message through FCM. Never raises; failures are logged.

    Returns:
        True when FCM accepted the message
    """
    server_key = current_app.config.get('FCM_SERVER_KEY')
    if not server_key:
        logger.debug('FCM_SERVER_KEY not configured, skipping push')
        return False

    payload = {
        'to': token,
        'notification': {'title': title, 'body': body},
        'data': {k: str(v) for k, v in (data or {}).items()},
    }
    headers = {
        'Authorization': f'key={server_key}',
        'Content-Type': 'application/json',
    }

    def _post():
        response = requests.post(
            current_app.config['FCM_SEND_URL'], json=payload, headers=headers,
            timeout=current_app.config.get('FCM_PUSH_TIMEOUT', 5),
        )
        response.raise_for_status()
        return response

    try:
        retry_with_backoff(_post, max_retries=current_app.config.get('FCM_PUSH_MAX_RETRIES', 1))
        return True
    except requests.RequestException as e:
        logger.warning(f'Push notification failed: {e}')
        return False
