"""
Non-diagnostic AI summary of a patient's recorded vitals.
"""
import json
import logging

from django.utils import timezone
from rest_framework.exceptions import ValidationError

from core.exceptions import TextGenerationError, TextGenerationForbidden
from core.models import HealthRecord, Patient
from core.services import gemini
from core.services.access import ensure_patient_data_access
from core.services.actors import Actor

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are a healthcare data analysis assistant. Analyze the following patient vital signs data and provide a clear, informative, and non-diagnostic summary.

IMPORTANT RULES:
- Do NOT provide medical diagnoses
- Do NOT recommend specific treatments or medications
- Use simple, easy-to-understand language
- Focus on trends, patterns, and observations
- Be encouraging and supportive in tone
- Mention if values are within normal ranges when appropriate

VITAL SIGNS DATA:
{vitals}

STATISTICAL SUMMARY:
{stats}

Provide a comprehensive but concise analysis (3-4 paragraphs) that includes:
1. Overall health trends: Are the vital signs generally stable, improving, or showing changes over time?
2. Pattern analysis: Are there any noticeable patterns (e.g., consistent values, fluctuations, trends)?
3. Range observations: How do the values compare to typical healthy ranges (mention ranges but don't diagnose)?
4. General insights: What does this data suggest about the patient's health monitoring? (Keep it informational only)

Format your response in clear paragraphs. Use friendly, accessible language that a patient can understand. End with a reminder that this is for informational purposes only and that they should consult healthcare professionals for medical advice."""

MESSAGES = {
    gemini.NOT_CONFIGURED: 'AI service is not configured. Please set GEMINI_API_KEY.',
    gemini.FORBIDDEN: 'AI service access denied. Please check your API key is valid and has proper permissions.',
    gemini.MODEL_UNAVAILABLE: 'AI models are not available with your API key.',
    gemini.RATE_LIMITED: 'AI service is temporarily unavailable. Please try again later.',
}


def collect_vitals(records) -> dict:
    """Oldest-first series of each vital sign, each entry dated."""
    vitals = {'bloodPressure': [], 'heartRate': [], 'sugarLevel': [], 'timestamps': []}
    for r in records:
        date = r.recorded_at.isoformat()
        vitals['timestamps'].append(date)
        if r.blood_pressure_systolic is not None and r.blood_pressure_diastolic is not None:
            vitals['bloodPressure'].append({
                'systolic': r.blood_pressure_systolic,
                'diastolic': r.blood_pressure_diastolic,
                'date': date,
            })
        if r.heart_rate is not None:
            vitals['heartRate'].append({'value': r.heart_rate, 'date': date})
        if r.sugar_level is not None:
            vitals['sugarLevel'].append({'value': float(r.sugar_level), 'date': date})
    return vitals


def compute_stats(vitals: dict) -> dict:
    bp = vitals['bloodPressure']
    hr = [x['value'] for x in vitals['heartRate']]
    sl = [x['value'] for x in vitals['sugarLevel']]
    stats = {'bloodPressure': None, 'heartRate': None, 'sugarLevel': None}
    if bp:
        systolic = [x['systolic'] for x in bp]
        diastolic = [x['diastolic'] for x in bp]
        stats['bloodPressure'] = {
            'avgSystolic': round(sum(systolic) / len(systolic)),
            'avgDiastolic': round(sum(diastolic) / len(diastolic)),
            'minSystolic': min(systolic),
            'maxSystolic': max(systolic),
            'count': len(bp),
        }
    if hr:
        stats['heartRate'] = {'average': round(sum(hr) / len(hr)), 'min': min(hr), 'max': max(hr), 'count': len(hr)}
    if sl:
        stats['sugarLevel'] = {
            'average': round(sum(sl) / len(sl), 1), 'min': min(sl), 'max': max(sl), 'count': len(sl),
        }
    return stats


def build_prompt(vitals: dict, stats: dict) -> str:
    series = {k: v for k, v in vitals.items() if v}
    return PROMPT_TEMPLATE.format(vitals=json.dumps(series, indent=2), stats=json.dumps(stats, indent=2))


def generate_health_summary(actor: Actor, patient: Patient) -> dict:
    ensure_patient_data_access(actor, patient)
    records = list(HealthRecord.objects.filter(patient=patient).order_by('recorded_at', 'id'))
    if not records:
        raise ValidationError({'detail': 'At least one health record with timestamp is required'})
    vitals = collect_vitals(records)
    if not (vitals['bloodPressure'] or vitals['heartRate'] or vitals['sugarLevel']):
        raise ValidationError({
            'detail': 'At least one vital sign (blood pressure, heart rate, or sugar level) is required'
        })
    stats = compute_stats(vitals)

    try:
        text = gemini.generate(build_prompt(vitals, stats))
    except gemini.GeminiError as exc:
        logger.warning('health summary for patient %s failed (%s): %s', patient.id, exc.kind, exc)
        if exc.kind == gemini.FORBIDDEN:
            raise TextGenerationForbidden(MESSAGES[gemini.FORBIDDEN])
        raise TextGenerationError(MESSAGES.get(exc.kind, f'Failed to generate health summary: {exc}'))

    return {'summary': text, 'stats': stats, 'generatedAt': timezone.now().isoformat()}
