from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

app_name = 'communications'

router = DefaultRouter()
router.register('notifications', views.NotificationViewSet, basename='notification')

urlpatterns = [
    path('', include(router.urls)),
]
