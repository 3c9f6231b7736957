"""Schema v1 - Leafy shop and gardening services schema.

This version includes tables for:
- Users and their profiles
- Contact messages and garden service booking forms
- Admin accounts
- Plant and gardening tool catalogues
- Orders and order items

user_profile, plants and GardeningTools keep updated_at current through the
update_updated_at_column trigger function.
"""

schema = {
    'version': 1,
    'database': 'leafy_db',
    'tables': [
        {
            'name': 'users',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'FName', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'LName', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'Email', 'type': 'VARCHAR(255)', 'unique': True, 'nullable': False},
                {'name': 'Password', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'role', 'type': 'VARCHAR(50)', 'default': "'user'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ],
            'indexes': [
                {'name': 'idx_users_email', 'columns': ['Email']}
            ]
        },
        {
            'name': 'user_profile',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'user_id', 'type': 'INTEGER', 'references': 'users(id)', 'on_delete': 'CASCADE'},
                {'name': 'address', 'type': 'TEXT'},
                {'name': 'gender', 'type': 'VARCHAR(20)'},
                {'name': 'dob', 'type': 'DATE'},
                {'name': 'phone', 'type': 'VARCHAR(20)'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ],
            'indexes': [
                {'name': 'idx_user_profile_user_id', 'columns': ['user_id']}
            ]
        },
        {
            'name': 'contactus',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'username', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'email', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'number', 'type': 'VARCHAR(20)', 'nullable': False},
                {'name': 'message', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ]
        },
        {
            'name': 'form',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'name', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'mobile', 'type': 'VARCHAR(20)', 'nullable': False},
                {'name': 'email', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'address', 'type': 'TEXT', 'nullable': False},
                {'name': 'location', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'garden_service', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'garden_area', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'price', 'type': 'DECIMAL(10, 2)', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ],
            'indexes': [
                {'name': 'idx_form_email', 'columns': ['email']}
            ]
        },
        {
            # Same booking columns as form, garden_area comes first
            'name': 'forms',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'name', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'mobile', 'type': 'VARCHAR(20)', 'nullable': False},
                {'name': 'email', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'address', 'type': 'TEXT', 'nullable': False},
                {'name': 'location', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'garden_area', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'garden_service', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'price', 'type': 'DECIMAL(10, 2)', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ],
            'indexes': [
                {'name': 'idx_forms_email', 'columns': ['email']}
            ]
        },
        {
            'name': 'admin',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'adminName', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'adminEmail', 'type': 'VARCHAR(255)', 'unique': True, 'nullable': False},
                {'name': 'password', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ]
        },
        {
            'name': 'plants',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'name', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'scientific_name', 'type': 'VARCHAR(255)'},
                {'name': 'description', 'type': 'TEXT'},
                {'name': 'price', 'type': 'DECIMAL(10, 2)'},
                {'name': 'image_url', 'type': 'VARCHAR(500)'},
                {'name': 'category', 'type': 'VARCHAR(100)'},
                {'name': 'stock_quantity', 'type': 'INTEGER', 'default': '0'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ]
        },
        {
            'name': 'GardeningTools',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'name', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'description', 'type': 'TEXT'},
                {'name': 'price', 'type': 'DECIMAL(10, 2)'},
                {'name': 'image_url', 'type': 'VARCHAR(500)'},
                {'name': 'category', 'type': 'VARCHAR(100)'},
                {'name': 'stock_quantity', 'type': 'INTEGER', 'default': '0'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ]
        },
        {
            'name': 'Orders',
            'columns': [
                {'name': 'Id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'FName', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'LName', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'Email', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'Phone', 'type': 'VARCHAR(20)', 'nullable': False},
                {'name': 'Address', 'type': 'TEXT', 'nullable': False},
                {'name': 'Total_price', 'type': 'DECIMAL(10, 2)', 'nullable': False},
                {'name': 'Discount', 'type': 'DECIMAL(10, 2)', 'default': '0'},
                {'name': 'Final_price', 'type': 'DECIMAL(10, 2)', 'nullable': False},
                {'name': 'Created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'},
                {'name': 'status', 'type': 'VARCHAR(50)', 'default': "'pending'"}
            ],
            'indexes': [
                {'name': 'idx_orders_email', 'columns': ['Email']}
            ]
        },
        {
            'name': 'Order_items',
            'columns': [
                {'name': 'Id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'Order_id', 'type': 'INTEGER', 'references': 'Orders(Id)', 'on_delete': 'CASCADE'},
                {'name': 'Product_name', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'Quantity', 'type': 'INTEGER', 'nullable': False},
                {'name': 'Price', 'type': 'DECIMAL(10, 2)', 'nullable': False},
                {'name': 'Subtotal', 'type': 'DECIMAL(10, 2)', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'default': 'CURRENT_TIMESTAMP'}
            ],
            'indexes': [
                {'name': 'idx_order_items_order_id', 'columns': ['Order_id']}
            ]
        }
    ],
    'functions': [
        {
            'name': 'update_updated_at_column',
            'body': '''
            BEGIN
                NEW.updated_at = CURRENT_TIMESTAMP;
                RETURN NEW;
            END;
            '''
        }
    ],
    'triggers': [
        {
            'name': 'update_user_profile_updated_at',
            'table': 'user_profile',
            'function': 'update_updated_at_column',
            'timing': 'BEFORE',
            'events': ['UPDATE']
        },
        {
            'name': 'update_plants_updated_at',
            'table': 'plants',
            'function': 'update_updated_at_column',
            'timing': 'BEFORE',
            'events': ['UPDATE']
        },
        {
            'name': 'update_gardeningtools_updated_at',
            'table': 'GardeningTools',
            'function': 'update_updated_at_column',
            'timing': 'BEFORE',
            'events': ['UPDATE']
        }
    ]
}
