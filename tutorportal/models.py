import logging
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

DEFAULT_SETTINGS = {
    'siteName': 'Tutor Portal',
    'supportEmail': '',
    'announcement': '',
    'defaultLanguage': 'English',
    'maintenanceMode': 'false',
    'allowRegistration': 'true',
}
FLAG_SETTINGS = ('maintenanceMode', 'allowRegistration')

class SiteSettings(db.Model):
    key = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.String(500))

def init_db(app):
    db.init_app(app)
    with app.app_context():
        db.create_all()

def get_site_settings():
    """Stored settings over the defaults. Flags come back as booleans."""
    settings = dict(DEFAULT_SETTINGS)
    settings.update({s.key: s.value for s in SiteSettings.query.all()})
    for key in FLAG_SETTINGS: settings[key] = (settings[key] or '').lower() == 'true'
    return settings

def update_site_settings(data):
    for key, value in data.items():
        if key not in DEFAULT_SETTINGS: continue
        setting = db.session.get(SiteSettings, key)
        if setting: setting.value = value
        else: db.session.add(SiteSettings(key=key, value=value))
    db.session.commit()
    logging.info(f"Site settings updated: {', '.join(sorted(k for k in data if k in DEFAULT_SETTINGS))}.")
