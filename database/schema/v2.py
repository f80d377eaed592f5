"""Schema v2 - Add the admin audit log.

Admin actions on the lifecycle (advance, pause, resume, duration and
growth changes) are recorded here after they commit.
"""

from .v1 import schema as v1

schema = {
    'version': 2,
    'tables': v1['tables'] + [
        {
            'name': 'admin_audit_log',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'admin_id', 'type': 'TEXT'},
                {'name': 'admin_email', 'type': 'TEXT'},
                {'name': 'action', 'type': 'TEXT', 'nullable': False},
                {'name': 'details', 'type': 'JSONB'},
                {'name': 'ip_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_audit_action', 'columns': ['action']},
                {'name': 'idx_audit_created', 'columns': ['created_at']}
            ]
        }
    ],
    'migrations': [
        '''
        CREATE TABLE IF NOT EXISTS admin_audit_log (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            admin_id TEXT,
            admin_email TEXT,
            action TEXT NOT NULL,
            details JSONB,
            ip_address TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        ''',
        'CREATE INDEX IF NOT EXISTS idx_audit_action ON admin_audit_log(action);',
        'CREATE INDEX IF NOT EXISTS idx_audit_created ON admin_audit_log(created_at);'
    ]
}
