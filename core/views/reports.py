"""
Medical report views.

Report files are never served by path: ``report_signed_url`` issues a
short-lived token and ``report_file`` streams the object for a valid one.
"""
from django.http import FileResponse
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, parser_classes, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from core.models import MedicalReport
from core.serializers.reports import ReportUploadSerializer, SignedUrlQuerySerializer
from core.services.actors import actor_for_request
from core.services.patients import get_patient
from core.services.reports import delete_report, list_reports, mint_signed_url, open_signed_report, upload_report


def _report_dict(r: MedicalReport) -> dict:
    return {
        'id': r.id,
        'patientId': r.patient_id,
        'reportName': r.report_name,
        'reportType': r.report_type,
        'uploadedBy': r.uploaded_by_id,
        'uploadedAt': r.uploaded_at.isoformat() if r.uploaded_at else None,
    }


def _get_report(pk) -> MedicalReport:
    report = MedicalReport.objects.select_related('patient').filter(id=pk).first()
    if not report:
        raise NotFound('Report not found')
    return report


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def patient_reports(request, pk: int):
    actor = actor_for_request(request)
    patient = get_patient(pk)
    if request.method == 'GET':
        return Response({'ok': True, 'data': [_report_dict(r) for r in list_reports(actor, patient)]})

    s = ReportUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    report = upload_report(
        actor, patient, s.validated_data['file'],
        report_name=s.validated_data['reportName'],
        report_type=s.validated_data.get('reportType'),
    )
    return Response({'ok': True, 'data': _report_dict(report)}, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def report_detail(request, pk: int):
    delete_report(actor_for_request(request), _get_report(pk))
    return Response({'ok': True, 'message': 'Report deleted successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def report_signed_url(request, pk: int):
    q = SignedUrlQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    result = mint_signed_url(actor_for_request(request), _get_report(pk), ttl=q.validated_data.get('expiresIn'))
    return Response({
        'ok': True,
        'signedUrl': request.build_absolute_uri(result['signedUrl']),
        'expiresIn': result['expiresIn'],
    })


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def report_file(request, token: str):
    handle, filename = open_signed_report(token)
    return FileResponse(handle, filename=filename)
