# -*- coding: utf-8 -*-
"""
Translation dictionaries for German and English.

This module contains all translatable strings shown by TimeGrid
(sync notifications and calendar action menus).
"""

TRANSLATIONS = {
    "en": {
        # Application
        "app.name": "TimeGrid",

        # Sync notifications
        "sync.all_synced": "All changes synced!",
        "sync.synced_items": "Synced {count} {items}",
        "sync.success_detail": "Successfully synced {count} {items}",
        "sync.failed_detail": "{count} {items} failed to sync and will be retried",
        "sync.item": "item",
        "sync.items": "items",
        "sync.offline": "You are offline. Changes will be synced when you reconnect.",
        "sync.online": "Back online",

        # Calendar action menus
        "menu.edit": "Edit",
        "menu.delete": "Delete",
        "menu.create_quick": "Create {minutes}-minute entry",
    },

    "de": {
        # Application
        "app.name": "TimeGrid",

        # Sync notifications
        "sync.all_synced": "Alle Änderungen synchronisiert!",
        "sync.synced_items": "{count} {items} synchronisiert",
        "sync.success_detail": "{count} {items} erfolgreich synchronisiert",
        "sync.failed_detail": "{count} {items} konnten nicht synchronisiert werden und werden erneut versucht",
        "sync.item": "Eintrag",
        "sync.items": "Einträge",
        "sync.offline": "Sie sind offline. Änderungen werden nach der Wiederverbindung synchronisiert.",
        "sync.online": "Wieder online",

        # Calendar action menus
        "menu.edit": "Bearbeiten",
        "menu.delete": "Löschen",
        "menu.create_quick": "{minutes}-Minuten-Eintrag erstellen",
    },
}
