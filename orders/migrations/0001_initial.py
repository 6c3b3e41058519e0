from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('movies', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentMethod',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True)),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Seat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('seat_code', models.CharField(max_length=10, unique=True)),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('qr_code', models.CharField(editable=False, max_length=64, unique=True)),
                ('fullname', models.CharField(max_length=200)),
                ('email', models.EmailField(max_length=254)),
                ('phone_number', models.CharField(max_length=30)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('payment_method', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='orders.paymentmethod')),
                ('schedule', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='movies.schedule')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='OrderSeat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='order_seats', to='orders.order')),
                ('schedule', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_seats', to='movies.schedule')),
                ('seat', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_seats', to='orders.seat')),
            ],
            options={
                'ordering': ['order', 'seat'],
            },
        ),
        migrations.AddField(
            model_name='order',
            name='seats',
            field=models.ManyToManyField(related_name='orders', through='orders.OrderSeat', to='orders.seat'),
        ),
        migrations.AddConstraint(
            model_name='orderseat',
            constraint=models.UniqueConstraint(fields=('order', 'seat'), name='uniq_order_seat'),
        ),
        migrations.AddConstraint(
            model_name='orderseat',
            constraint=models.UniqueConstraint(fields=('schedule', 'seat'), name='uniq_schedule_seat'),
        ),
    ]
