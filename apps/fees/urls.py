from django.urls import path
from . import views

app_name = 'fees'

urlpatterns = [
    # POST /api/payment-engine/ - action-dispatched fee engine
    path('', views.payment_engine, name='payment-engine'),
]
