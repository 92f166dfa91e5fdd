from django.urls import path, include
from rest_framework_nested import routers
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from ClassroomApp.api.views import (
    UserViewSet,
    ClassroomViewSet,
    ClassroomStudentViewSet,
    ClassroomAssignmentViewSet,
    AssignmentViewSet,
    SubmissionViewSet,
    RegistrationView,
    UploadView,
)

router = routers.SimpleRouter()
router.register(r"users", UserViewSet, basename="user")
router.register(r"classrooms", ClassroomViewSet, basename="classroom")
router.register(r"assignments", AssignmentViewSet, basename="assignment")
router.register(r"submissions", SubmissionViewSet, basename="submission")

classrooms_router = routers.NestedSimpleRouter(router, r"classrooms", lookup="classroom")
classrooms_router.register(r"students", ClassroomStudentViewSet, basename="classroom-students")
classrooms_router.register(r"assignments", ClassroomAssignmentViewSet, basename="classroom-assignments")

urlpatterns = [
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="docs"),
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/register/", RegistrationView.as_view(), name="auth-register"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("uploads/", UploadView.as_view(), name="uploads"),
    path("", include(router.urls)),
    path("", include(classrooms_router.urls)),
]
