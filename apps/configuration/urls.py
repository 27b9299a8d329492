from django.urls import path

from . import views

app_name = 'configuration'

urlpatterns = [
    path('config/', views.LibraryConfigurationView.as_view(), name='library_config'),
]
