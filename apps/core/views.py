"""
Core views for the retail back-office platform.
"""

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from rest_framework import generics, permissions
from rest_framework_simplejwt.views import TokenObtainPairView

from .serializers import CustomTokenObtainPairSerializer, UserSerializer


@require_http_methods(["GET"])
def health_check(request):
    """
    Health check endpoint for container orchestration.
    Returns 200 OK if the application is running.
    """
    return JsonResponse({"status": "healthy", "service": "retail-backoffice"})


class CustomTokenObtainPairView(TokenObtainPairView):
    """
    Custom JWT token view that includes additional user information.
    """

    serializer_class = CustomTokenObtainPairSerializer


class CurrentUserView(generics.RetrieveAPIView):
    """
    Return the authenticated user's profile and capabilities.
    """

    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user
