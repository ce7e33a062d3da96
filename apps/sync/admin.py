from django.contrib import admin

from .models import Category, Product, Transaction, TransactionItem


class DeletedFilter(admin.SimpleListFilter):
    title = "deleted"
    parameter_name = "deleted"

    def lookups(self, request, model_admin):
        return [("yes", "Deleted"), ("no", "Active")]

    def queryset(self, request, queryset):
        if self.value() == "yes":
            return queryset.filter(deleted_at__isnull=False)
        if self.value() == "no":
            return queryset.filter(deleted_at__isnull=True)
        return queryset


class SoftDeleteAdminMixin:
    @admin.display(boolean=True, description="Deleted", ordering="deleted_at")
    def deleted(self, obj):
        return obj.is_deleted


class TransactionItemInline(admin.TabularInline):
    model = TransactionItem
    extra = 0
    can_delete = False
    fields = ("id", "product", "quantity", "price", "line_total", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Category)
class CategoryAdmin(SoftDeleteAdminMixin, admin.ModelAdmin):
    list_display = ("id", "name", "deleted", "deleted_at", "updated_at")
    search_fields = ("id", "name")
    list_filter = (DeletedFilter,)


@admin.register(Product)
class ProductAdmin(SoftDeleteAdminMixin, admin.ModelAdmin):
    list_display = ("id", "name", "barcode", "price", "stock", "category", "deleted", "updated_at")
    search_fields = ("id", "name", "barcode")
    list_filter = (DeletedFilter, "category")
    list_select_related = ("category",)


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "created_at", "total_amount", "payment_method")
    list_filter = ("payment_method",)
    search_fields = ("id",)
    readonly_fields = ("id", "total_amount", "payment_method", "created_at")
    inlines = [TransactionItemInline]
