from django.urls import path
from . import views

urlpatterns = [

    path('orders', views.create_order, name='create_order'),
    path('orders/history', views.order_history, name='order_history'),
    path('orders/schedules', views.schedule_list, name='schedule_list'),
    path('orders/seats', views.available_seats, name='available_seats'),


    path('orders/payments', views.payment_list, name='payment_list'),
    path('orders/cinemas', views.cinema_list, name='cinema_list'),
    path('orders/locations', views.location_list, name='location_list'),
    path('orders/times', views.time_list, name='time_list'),

    path('orders/<int:order_id>', views.order_detail, name='order_detail'),
]
