"""
URL mappings for the clinic API.

Every path is registered with a name equal to its view so tests can use
``reverse``.  Trailing slashes are deliberately omitted.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view
from .views import (
    appointments,
    catalogue,
    dashboard,
    health,
    labs,
    notifications,
    receipts,
    record_requests,
    records,
    schedules,
    uploads,
    users,
)


def _p(route, view, name=None):
    # api_view wrappers carry the function name on their generated class
    name = name or getattr(getattr(view, 'cls', None), '__name__', None) or view.__name__
    return path(route, view, name=name)


urlpatterns = [
    path('', include('django_prometheus.urls')),
    _p('healthz', health.healthz),

    # Authentication & accounts
    _p('api/auth/login', login_view),
    _p('api/auth/refresh', jwt_refresh_view),
    _p('api/auth/logout', jwt_logout_view),
    _p('api/auth/register', users.register_view),
    _p('api/user/profile', users.profile_view),
    _p('api/user/change-password', users.change_password_view),
    _p('api/admin/users', users.admin_users),
    _p('api/admin/users/<int:pk>', users.admin_user_detail),

    # Dashboards & reports
    _p('api/dashboard', dashboard.dashboard),
    _p('api/admin/dashboard', dashboard.admin_dashboard),
    _p('api/admin/reports', dashboard.report_download),

    # Catalogue & doctor directory
    _p('api/services', catalogue.public_services),
    _p('api/admin/services', catalogue.admin_services),
    _p('api/admin/services/<int:pk>', catalogue.admin_service_detail),
    _p('api/doctor/services', catalogue.my_services),
    _p('api/doctor/services/<int:pk>', catalogue.my_service_detail),
    _p('api/doctors', catalogue.doctors),
    _p('api/doctors/<int:pk>', catalogue.doctor_detail),
    _p('api/doctors/<int:pk>/services', catalogue.doctor_services),
    _p('api/doctors/<int:doctor_id>/schedules', schedules.doctor_schedules),

    # Schedules
    _p('api/doctor/schedules', schedules.my_schedules),
    _p('api/doctor/schedules/bulk', schedules.my_schedules_bulk),
    _p('api/doctor/schedules/<int:pk>', schedules.my_schedule_detail),
    _p('api/staff/schedules', schedules.staff_schedules),
    _p('api/staff/schedules/<int:pk>', schedules.staff_schedule_detail),
    _p('api/staff/schedules/<int:pk>/review', schedules.review_schedule),

    # Appointments
    _p('api/appointments/slots', appointments.slots_view),
    _p('api/appointments/booked-slots', appointments.booked_slots_view),
    _p('api/patient/appointments', appointments.patient_appointments),
    _p('api/patient/appointments/upcoming', appointments.patient_upcoming),
    _p('api/patient/appointments/<int:pk>/cancel', appointments.patient_cancel),
    _p('api/doctor/appointments', appointments.doctor_appointments),
    _p('api/doctor/appointments/pending-count', appointments.doctor_pending_count),
    _p('api/staff/appointments', appointments.staff_appointments),
    _p('api/appointments/<int:pk>', appointments.appointment_detail),
    _p('api/appointments/<int:pk>/status', appointments.appointment_status),
    _p('api/appointments/<int:pk>/pdf', appointments.appointment_pdf),

    # Records & prescriptions
    _p('api/records', records.records),
    _p('api/records/<int:pk>', records.record_detail),
    _p('api/records/<int:pk>/pdf', records.record_pdf),
    _p('api/records/<int:pk>/prescriptions', records.record_prescriptions),
    _p('api/records/<int:pk>/prescriptions/pdf', records.record_prescriptions_pdf),
    _p('api/patients/<int:patient_id>/history', records.patient_history),
    _p('api/prescriptions/<int:pk>/pdf', records.prescription_pdf),
    _p('api/prescriptions/<int:pk>/status', records.prescription_status),

    # Laboratory
    _p('api/lab/types', labs.lab_types),
    _p('api/patient/lab', labs.book_lab),
    _p('api/patient/lab/results', labs.my_lab_results),
    _p('api/patient/lab/results/<int:pk>', labs.my_lab_result_detail),
    _p('api/lab/<int:pk>/pdf', labs.lab_result_pdf),
    _p('api/staff/lab', labs.staff_labs),
    _p('api/staff/lab/pending', labs.staff_pending_labs),
    _p('api/staff/lab/<int:pk>', labs.staff_lab_detail),
    _p('api/staff/lab/<int:pk>/results', labs.staff_lab_results),

    # Uploads
    _p('api/patient/files', uploads.medical_files),
    _p('api/patient/files/<int:pk>', uploads.medical_file_detail),

    # Record access requests
    _p('api/patient/record-requests', record_requests.my_requests),
    _p('api/patient/record-requests/<int:pk>/record', record_requests.my_request_record),
    _p('api/staff/record-requests', record_requests.staff_requests),
    _p('api/staff/record-requests/<int:pk>', record_requests.staff_request_detail),
    _p('api/staff/record-requests/<int:pk>/decide', record_requests.staff_decide_request),

    # Receipts
    _p('api/staff/receipts', receipts.receipts),
    _p('api/staff/receipts/<int:pk>', receipts.receipt_detail),
    _p('api/receipts/<int:pk>/pdf', receipts.receipt_pdf),

    # Notifications
    _p('api/notifications', notifications.list_notifications),
    _p('api/notifications/recent', notifications.recent),
    _p('api/notifications/unread-count', notifications.unread_count),
    _p('api/notifications/read-all', notifications.mark_all_read),
    _p('api/notifications/read-appointments', notifications.mark_appointments_read),
    _p('api/notifications/<int:pk>/read', notifications.mark_read),
]
