from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='user',
            name='sip_credential_id',
            field=models.CharField(blank=True, help_text='Telnyx telephony credential used by the WebRTC client', max_length=64, null=True),
        ),
        migrations.AddField(
            model_name='user',
            name='sip_username',
            field=models.CharField(blank=True, help_text='SIP username of the telephony credential', max_length=128, null=True),
        ),
        migrations.AddField(
            model_name='user',
            name='webrtc_enabled',
            field=models.BooleanField(default=False, help_text='Whether the user has WebRTC calling set up'),
        ),
    ]
