from apps.quoting.urls_rest import rest_urlpatterns

app_name = "quoting"

urlpatterns = []

urlpatterns += rest_urlpatterns
