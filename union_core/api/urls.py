# union_core/api/urls.py
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter, SimpleRouter

from union_core.audit.api.views import AuditEventViewSet
from union_core.consents.api.views import ConsentStageViewSet, RegistrationParcelsView, RegistrationSummaryView
from union_core.gis.api.views import ParcelViewSet
from union_core.iam.api.auth import LoginView, LogoutView, RefreshView
from union_core.iam.api.me import MeView
from union_core.members.api.views import InviteAcceptView, MemberInviteViewSet, MemberViewSet, RegistrationView
from union_core.notifications.api.views import MessageLogViewSet
from union_core.unions.api.views import UnionMetaView, UnionViewSet
from union_core.uploads.api.views import UploadView

router = DefaultRouter()
router.register(r"unions", UnionViewSet, basename="unions")

# Union-scoped modules: /u/<slug>/... (UnionScopeMiddleware resolves the slug)
scoped_router = SimpleRouter()
scoped_router.register(r"members", MemberViewSet, basename="members")
scoped_router.register(r"invites", MemberInviteViewSet, basename="invites")
scoped_router.register(r"parcels", ParcelViewSet, basename="parcels")
scoped_router.register(r"consent-stages", ConsentStageViewSet, basename="consent-stages")
scoped_router.register(r"audit/events", AuditEventViewSet, basename="audit-events")
scoped_router.register(r"notifications/messages", MessageLogViewSet, basename="notification-messages")

scoped_urlpatterns = [
    path("meta/", UnionMetaView.as_view(), name="union-meta"),
    path("register/", RegistrationView.as_view(), name="member-register"),
    path("invites/accept/", InviteAcceptView.as_view(), name="invite-accept"),
    path("registration/summary/", RegistrationSummaryView.as_view(), name="registration-summary"),
    path("registration/parcels/", RegistrationParcelsView.as_view(), name="registration-parcels"),
    *scoped_router.urls,
]

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),
    path("uploads/", UploadView.as_view(), name="uploads"),

    path("u/<str:slug>/", include(scoped_urlpatterns)),

    *router.urls,
]
