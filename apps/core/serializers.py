"""
Serializers for core models.
"""

from django.contrib.auth import get_user_model

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom JWT token serializer that includes the user's role.
    """

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)

        # Add custom claims
        token["username"] = user.username
        token["email"] = user.email
        token["role"] = user.role

        return token


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User model.
    """

    can_approve_returns = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "phone",
            "is_active",
            "can_approve_returns",
            "date_joined",
            "last_login",
        ]
        read_only_fields = fields

    def get_can_approve_returns(self, obj):
        return obj.can_approve_returns()
