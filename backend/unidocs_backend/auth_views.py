from __future__ import annotations

from django.utils import timezone
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from .throttles import AuthLoginIPRateThrottle


class ThrottledTokenObtainPairView(TokenObtainPairView):
    throttle_classes = [AuthLoginIPRateThrottle]


class HealthAPIView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, format=None):
        return Response(
            {
                "status": "ok",
                "timestamp": timezone.now().isoformat(),
                "service": "UniDocs Backend API",
            }
        )
