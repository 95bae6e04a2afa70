from django.apps import AppConfig


class OnlineFulfillmentConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'online_fulfillment'
    verbose_name = 'Online Order Fulfillment'
