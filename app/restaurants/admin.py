from django.contrib import admin

from restaurants.models import Restaurant, RestaurantStaff, Table


class TableInline(admin.TabularInline):
    model = Table
    extra = 0


class RestaurantStaffInline(admin.TabularInline):
    model = RestaurantStaff
    extra = 0
    raw_id_fields = ["user"]


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "phone_number", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ("name",)}
    inlines = [TableInline, RestaurantStaffInline]
