"""Built-in role templates a gym can instantiate."""
import copy

_FULL = {'read': True, 'create': True, 'update': True, 'delete': True}

ROLE_TEMPLATES = {
    'GymOwner': {
        'description': 'Full access to all gym resources',
        'permissions': {
            'users': dict(_FULL),
            'roles': dict(_FULL),
            'gyms': {'read': True, 'update': True},
            'trainers': dict(_FULL),
            'students': dict(_FULL),
            'programs': dict(_FULL),
            'exercises': dict(_FULL),
            'equipment': dict(_FULL),
            'products': dict(_FULL),
            'product_categories': dict(_FULL),
            'orders': dict(_FULL),
            'trainer_matches': dict(_FULL),
        },
    },
    'Trainer': {
        'description': 'Can manage students and training programs',
        'permissions': {
            'users': {'read': True},
            'students': {'read': True, 'update': True},
            'programs': dict(_FULL),
            'exercises': {'read': True},
            'workouts': {'read': True},
            'equipment': {'read': True},
            'products': {'read': True},
            'orders': {'read': True, 'update': True},
            'trainer_matches': {'read': True, 'update': True},
        },
    },
    'Student': {
        'description': 'Can view and log workouts, order products',
        'permissions': {
            'workouts': {'read': True, 'create': True},
            'programs': {'read': True},
            'products': {'read': True},
            'product_categories': {'read': True},
            'orders': {'create': True, 'read': True, 'delete': True},
        },
    },
    'Receptionist': {
        'description': 'Can manage students and view basic information',
        'permissions': {
            'users': {'read': True, 'create': True},
            'students': {'read': True, 'create': True, 'update': True},
            'products': {'read': True},
            'orders': {'read': True, 'create': True, 'update': True},
        },
    },
    'Assistant Trainer': {
        'description': 'Can view and update training programs',
        'permissions': {
            'users': {'read': True},
            'students': {'read': True},
            'programs': {'read': True, 'update': True},
            'exercises': {'read': True},
            'workouts': {'read': True},
        },
    },
}


def get_template(name):
    """Return a deep copy of the named template or None."""
    template = ROLE_TEMPLATES.get(name)
    return copy.deepcopy(template) if template else None


def list_templates():
    return [
        {'name': name, **copy.deepcopy(template)}
        for name, template in ROLE_TEMPLATES.items()
    ]
