from django.contrib import admin

from .models import AgentDnsVersion, Instance, Vm


class VmInline(admin.TabularInline):
    model = Vm
    extra = 0
    fields = ("agent_id", "cid", "active", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Instance)
class InstanceAdmin(admin.ModelAdmin):
    list_display = ("job", "index", "uuid", "deployment", "compilation", "updated_at")
    list_filter = ("compilation", "deployment")
    search_fields = ("job", "uuid", "vms__agent_id", "vms__cid")
    inlines = [VmInline]


@admin.register(Vm)
class VmAdmin(admin.ModelAdmin):
    list_display = ("cid", "agent_id", "instance", "active", "created_at")
    list_filter = ("active",)
    search_fields = ("cid", "agent_id")


@admin.register(AgentDnsVersion)
class AgentDnsVersionAdmin(admin.ModelAdmin):
    list_display = ("agent_id", "dns_version", "updated_at")
    search_fields = ("agent_id",)
    readonly_fields = ("updated_at",)
