"""
Audit log model for warehouse fulfillment.
"""

import uuid
from decimal import Decimal
from django.db import models
from django.conf import settings
from django.utils import timezone


def _json_safe(obj):
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_json_safe(item) for item in obj]
    elif isinstance(obj, (Decimal, uuid.UUID)):
        return str(obj)
    else:
        return obj


class AuditLog(models.Model):
    """
    Audit trail for orders, picks and dispatches.

    Administrative operations spanning many orders are logged once with
    no entity id and the affected counts in ``metadata``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    entity_type = models.CharField(
        max_length=50,
        help_text="Type of entity (Order, Pick, OrderItem, etc.)"
    )
    entity_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Identifier of the entity; empty for bulk operations"
    )
    action = models.CharField(
        max_length=50,
        help_text="Action performed (ingested, scan_recorded, dispatch_committed, etc.)"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='audit_logs',
        help_text="User who performed the action"
    )

    old_values = models.JSONField(default=dict, blank=True)
    new_values = models.JSONField(default=dict, blank=True)
    field_changes = models.JSONField(default=dict, blank=True)

    timestamp = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id', '-timestamp'], name='idx_audit_entity'),
            models.Index(fields=['action', '-timestamp'], name='idx_audit_action'),
        ]

    def __str__(self):
        return f"{self.entity_type} {self.entity_id} - {self.action} by {self.user} at {self.timestamp}"

    @classmethod
    def log_change(cls, entity, action: str, user=None, old_values=None,
                   new_values=None, field_changes=None, notes="", metadata=None):
        """
        Create an audit log entry for an entity change.

        Args:
            entity: The model instance being audited
            action: The action performed
            user: User who performed the action
            old_values: Previous state
            new_values: New state
            field_changes: Specific field changes
            notes: Additional notes
            metadata: Additional metadata
        """
        return cls.objects.create(
            entity_type=entity.__class__.__name__,
            entity_id=str(entity.pk),
            action=action,
            user=user,
            old_values=_json_safe(old_values or {}),
            new_values=_json_safe(new_values or {}),
            field_changes=_json_safe(field_changes or {}),
            notes=notes,
            metadata=_json_safe(metadata or {})
        )

    @classmethod
    def log_status_change(cls, entity, old_status: str, new_status: str, user=None,
                          notes="", field='status'):
        """Log a status change for an entity."""
        return cls.log_change(
            entity=entity,
            action=f'{field}_changed',
            user=user,
            old_values={field: old_status},
            new_values={field: new_status},
            field_changes={field: {'old': old_status, 'new': new_status}},
            notes=notes
        )

    @classmethod
    def log_bulk_change(cls, entity_type: str, action: str, user=None, notes="", metadata=None):
        """Log an administrative operation applied to many entities at once."""
        return cls.objects.create(
            entity_type=entity_type,
            entity_id=None,
            action=action,
            user=user,
            notes=notes,
            metadata=_json_safe(metadata or {})
        )
