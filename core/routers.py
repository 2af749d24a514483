"""
URL mappings for the CareBridge API.

Trailing slashes are deliberately omitted (``APPEND_SLASH = False``);
the front-end calls every path without one.
"""
from django.urls import path, include

from .auth_views import login_view, signup_view, jwt_refresh_view, jwt_logout_view
from .views import accounts
from .views import health
from .views import health_records
from .views import messages
from .views import patients
from .views import profile
from .views import reports
from .views import summary
from .views import transfers


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/signup', signup_view, name='signup_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    path('api/profile', profile.profile),
    path('api/profile/password', profile.profile_password),
    # Transfers
    path('api/transfers', transfers.transfers),
    path('api/transfers/<int:pk>', transfers.transfer_detail),
    path('api/transfers/<int:pk>/accept', transfers.transfer_accept),
    path('api/transfers/<int:pk>/complete', transfers.transfer_complete),
    path('api/transfers/<int:pk>/cancel', transfers.transfer_cancel),
    path('api/transfers/<int:pk>/messages', messages.transfer_messages),
    # Patients
    path('api/patients', patients.list_patients),
    path('api/patients/search', patients.search_patient),
    path('api/patients/ensure-record', patients.ensure_record),
    path('api/patients/<int:pk>/admit', patients.admit),
    path('api/patients/<int:pk>/transfers', transfers.patient_transfers),
    path('api/patients/<int:pk>/health-records', health_records.patient_health_records),
    path('api/patients/<int:pk>/reports', reports.patient_reports),
    path('api/patients/<int:pk>/health-summary', summary.health_summary),
    # Health records & reports
    path('api/health-records/<int:pk>', health_records.health_record_detail),
    path('api/reports/<int:pk>', reports.report_detail),
    path('api/reports/<int:pk>/signed-url', reports.report_signed_url),
    path('api/reports/files/<str:token>', reports.report_file, name='report-file'),
    # Hospitals & accounts
    path('api/hospitals', accounts.hospitals),
    path('api/hospital/doctors', accounts.hospital_doctors),
    path('api/admin/accounts', accounts.admin_create_account),
]
