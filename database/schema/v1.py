"""Schema v1 - Pricing lifecycle tables.

This version includes tables for:
- Series and their multipliers and sell-through
- Phases and their timers
- The lifecycle pointer naming the active phase
- Lifecycle settings
"""

_LIFECYCLE_TABLES = [
    {
        'name': 'series',
        'columns': [
            {'name': 'series_number', 'type': 'INT8', 'primary_key': True},
            {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'PENDING'"},
            {'name': 'multiplier', 'type': 'DECIMAL', 'nullable': False, 'default': '1.0'},
            {'name': 'start_date', 'type': 'TIMESTAMPTZ'},
            {'name': 'end_date', 'type': 'TIMESTAMPTZ'},
            {'name': 'total_nfts', 'type': 'INT8', 'nullable': False, 'default': '0'},
            {'name': 'sold_count', 'type': 'INT8', 'nullable': False, 'default': '0'},
            {'name': 'sell_through_rate', 'type': 'DECIMAL'},
            {'name': 'revenue', 'type': 'DECIMAL', 'nullable': False, 'default': '0'},
            {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
            {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
        ],
        'indexes': [
            {'name': 'idx_series_status', 'columns': ['status']}
        ]
    },
    {
        'name': 'phases',
        'columns': [
            {'name': 'series_number', 'type': 'INT8'},
            {'name': 'phase_number', 'type': 'INT8'},
            {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'PENDING'"},
            {'name': 'duration_seconds', 'type': 'INT8', 'nullable': False},
            {'name': 'start_date', 'type': 'TIMESTAMPTZ'},
            {'name': 'end_date', 'type': 'TIMESTAMPTZ'},
            {'name': 'is_paused', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
            {'name': 'paused_at', 'type': 'TIMESTAMPTZ'},
            {'name': 'total_paused_ms', 'type': 'INT8', 'nullable': False, 'default': '0'},
            {'name': 'total_nfts', 'type': 'INT8', 'nullable': False, 'default': '0'},
            {'name': 'sold_count', 'type': 'INT8', 'nullable': False, 'default': '0'},
            {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
            {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
        ],
        'primary_key': ['series_number', 'phase_number'],
        'foreign_keys': [
            {'columns': ['series_number'], 'references': 'series(series_number)'}
        ],
        'indexes': [
            {'name': 'idx_phases_status', 'columns': ['status']},
            # At most one phase runs at a time
            {
                'name': 'idx_phases_single_active',
                'columns': ['status'],
                'unique': True,
                'where': "status = 'ACTIVE'"
            }
        ]
    },
    {
        'name': 'lifecycle_pointer',
        'columns': [
            {'name': 'id', 'type': 'TEXT', 'primary_key': True},
            {'name': 'series_number', 'type': 'INT8'},
            {'name': 'phase_number', 'type': 'INT8'},
            {'name': 'version', 'type': 'INT8', 'nullable': False, 'default': '0'},
            {'name': 'updated_at', 'type': 'TIMESTAMPTZ'}
        ]
    },
    {
        'name': 'lifecycle_settings',
        'columns': [
            {'name': 'id', 'type': 'TEXT', 'primary_key': True},
            {'name': 'series_growth_percent', 'type': 'DECIMAL', 'nullable': False, 'default': '7.5'},
            {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
        ]
    }
]

schema = {
    'version': 1,
    'tables': _LIFECYCLE_TABLES
}
