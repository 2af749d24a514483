from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import JsonResponse


def healthz(request):
    """Liveness check: database round-trip plus cache reachability."""
    checks = {}
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        checks['db'] = bool(row and row[0] == 1)
    except DatabaseError as e:
        return JsonResponse({'ok': False, 'error': {'code': 'db_unavailable', 'message': str(e)}}, status=503)
    cache.set('healthz', 1, 5)
    checks['cache'] = cache.get('healthz') == 1
    return JsonResponse({'ok': all(checks.values()), **checks})
