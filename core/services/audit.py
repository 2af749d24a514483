import logging
from typing import Optional, Any, Dict

from django.db import transaction

from core.models import AuditEvent

logger = logging.getLogger(__name__)


def log_action(*, user_id: Optional[int], action: str, object_type: Optional[str]=None, object_id: Optional[int]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user_id=user_id,
        action=action,
        object_type=object_type, object_id=object_id,
        detail=detail or {},
    )


def try_log_action(**kwargs) -> Optional[AuditEvent]:
    """Audit without ever failing the caller's operation."""
    try:
        with transaction.atomic():
            return log_action(**kwargs)
    except Exception:
        logger.warning('audit write failed for %s', kwargs.get('action'), exc_info=True)
        return None
