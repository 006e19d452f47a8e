"""
Ledgerline Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("audit-logs/actions", views.action_logs_list_view),
    path("audit-logs/actions/undo", views.action_logs_undo_view),
    path("audit-logs/actions/redo", views.action_logs_redo_view),
]
