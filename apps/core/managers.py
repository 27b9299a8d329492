from django.db import models


class ActiveQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)


class ActiveManager(models.Manager.from_queryset(ActiveQuerySet)):
    """
    Manager returning only records flagged as active
    """
    def get_queryset(self):
        return super().get_queryset().filter(is_active=True)

    def with_inactive(self):
        """
        Return all records including deactivated ones
        """
        return super().get_queryset()


__all__ = [
    'ActiveQuerySet',
    'ActiveManager',
]
