from django.contrib import admin
from .models import SentReminder

@admin.register(SentReminder)
class SentReminderAdmin(admin.ModelAdmin):
    list_display = ('reservation_code', 'tier', 'scheduled_for', 'email_sent', 'chat_sent', 'created_at', 'updated_at')
    list_filter = ('tier', 'email_sent', 'chat_sent')
    search_fields = ('reservation_code',)
