"""
BizzyTrack Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("pricing/evaluate", views.pricing_evaluate_view),
    path("pricing/rules", views.pricing_rules_list_view),
    path("pricing/rules/create", views.pricing_rules_create_view),
    path("department/handoffs/create", views.handoffs_create_view),
    path("department/handoffs/accept", views.handoffs_accept_view),
    path("department/handoffs/reject", views.handoffs_reject_view),
    path("department/handoffs/pending", views.handoffs_pending_view),
    path("accounting/trial-balance", views.trial_balance_view),
]
