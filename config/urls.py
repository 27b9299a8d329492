from django.contrib import admin
from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path('admin/', admin.site.urls),

    # Token auth
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # REST API
    path('api/admin/', include('apps.configuration.urls', namespace='configuration')),
    path('api/', include('apps.library.urls', namespace='library')),
    path('api/', include('apps.communications.urls', namespace='communications')),
    path('api-auth/', include('rest_framework.urls')),
]
