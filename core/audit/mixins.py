from django.db import transaction

from .services import log_activity


class ActivityLogMixin:
    """
    ModelViewSet mixin: every create/update/destroy runs in one transaction
    together with its AdminActivityLog row.
    """

    activity_entity_type = None

    def get_create_kwargs(self) -> dict:
        return {}

    def _entity_type(self, instance) -> str:
        return self.activity_entity_type or instance._meta.model_name

    def perform_create(self, serializer):
        with transaction.atomic():
            instance = serializer.save(**self.get_create_kwargs())
            log_activity(
                self.request,
                f"create_{self._entity_type(instance)}",
                instance,
                self._entity_type(instance),
            )

    def perform_update(self, serializer):
        with transaction.atomic():
            instance = serializer.save()
            log_activity(
                self.request,
                f"update_{self._entity_type(instance)}",
                instance,
                self._entity_type(instance),
                details={"fields": sorted(serializer.validated_data.keys())},
            )

    def perform_destroy(self, instance):
        entity_type = self._entity_type(instance)
        entity_id = str(instance.pk)
        with transaction.atomic():
            log_activity(
                self.request,
                f"delete_{entity_type}",
                instance,
                entity_type,
                details={"label": str(instance)[:200], "id": entity_id},
            )
            instance.delete()
