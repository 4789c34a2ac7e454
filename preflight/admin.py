from django.contrib import admin

from .models import Shop, Upload, UploadItem


class UploadItemInline(admin.TabularInline):
    model = UploadItem
    extra = 0
    fields = ["location", "original_name", "storage_key", "thumbnail_key", "preflight_status"]
    readonly_fields = fields


@admin.register(Shop)
class ShopAdmin(admin.ModelAdmin):
    list_display = ["shop_domain", "plan", "storage_provider", "created_at"]
    list_filter = ["plan", "storage_provider"]
    search_fields = ["shop_domain"]


@admin.register(Upload)
class UploadAdmin(admin.ModelAdmin):
    list_display = ["id", "shop", "status", "created_at", "updated_at"]
    list_filter = ["status"]
    inlines = [UploadItemInline]
