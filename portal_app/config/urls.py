from django.conf import settings
from django.contrib import admin
from django.urls import include, path
from django_ses.views import SESEventWebhookView

from portal.views_health import healthz, readyz

urlpatterns = [
    path('healthz', healthz, name='healthz-noslash'),
    path('healthz/', healthz, name='healthz'),
    path('readyz', readyz, name='readyz-noslash'),
    path('readyz/', readyz, name='readyz'),
    path('ses/event-webhook/', SESEventWebhookView.as_view(), name='event_webhook'),
    path('admin/django-ses/', include('django_ses.urls')),
    path('admin/', admin.site.urls),
    path('api/', include('portal.urls')),
]

if settings.DEBUG:
    from django.conf.urls.static import static

    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
