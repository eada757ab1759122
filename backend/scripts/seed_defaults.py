#!/usr/bin/env python
"""Idempotent seed script for role presets & configuration documents.

Usage:
    python backend/scripts/seed_defaults.py               # seed normally
    python backend/scripts/seed_defaults.py --show-roles  # print role -> module levels (after ensuring seed)
    python backend/scripts/seed_defaults.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_defaults.py --export-json roles.json
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from erp import create_app, get_db  # type: ignore
from erp.models.authz import Base, Role, User, UserRole
from erp.models.defaults import DefaultsDocument
from erp.constants.modules import ROLE_PRESETS, IMPLEMENTED_MODULES, ADMIN_ROLE_ID, ADMIN_ROLE_LABEL
from erp.services.policy import build_initial_admin_claims
from erp.services.roles import epoch_ms
from erp.utils.date_range import utcnow

# Documents are only created when missing; existing ones are left alone
DEFAULT_DOCUMENTS = {
    DefaultsDocument.KEY_MODULES: {'modules_list': sorted(IMPLEMENTED_MODULES)},
    DefaultsDocument.KEY_USERS_PARAMETERS: {},
    DefaultsDocument.KEY_PROVIDERS: {'fuel': []},
    DefaultsDocument.KEY_INVENTORY_CODES: {'category': [], 'subcategories': {}, 'zone': []},
    DefaultsDocument.KEY_STORAGE: {'storage_locations': [], 'movement_types': ['EMAT01', 'SMAT01']},
}


def ensure_roles(session):
    existing = {r.id: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_id, preset in ROLE_PRESETS.items():
        if role_id in existing:
            continue
        session.add(Role(id=role_id, label=preset['label'], modules=dict(preset['modules']),
                         description=preset.get('description')))
        created += 1
    session.flush()
    return created


def ensure_documents(session):
    existing = {d.key for d in session.execute(select(DefaultsDocument)).scalars().all()}
    created = 0
    for key, data in DEFAULT_DOCUMENTS.items():
        if key not in existing:
            session.add(DefaultsDocument(key=key, data=data))
            created += 1
    return created


def ensure_initial_admin(session):
    admin_email = os.getenv('SEED_ADMIN_EMAIL')
    if not admin_email:
        return
    user = session.execute(select(User).where(User.email == admin_email)).scalar_one_or_none()
    if user is None:
        user = User(name='Administrador', email=admin_email)
        user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
        session.add(user)
        session.flush()
    if session.get(UserRole, user.id) is not None:
        return
    now = utcnow()
    user.custom_claims = build_initial_admin_claims(epoch_ms(now))
    session.add(UserRole(user_id=user.id, role_id=ADMIN_ROLE_ID, role_label=ADMIN_ROLE_LABEL,
                         assigned_by='system', assigned_at=now, user_email=user.email, user_name=user.name))
    print(f"[INFO] Granted initial admin to {admin_email}.")


def build_role_module_map(session):
    return {r.id: dict(sorted((r.modules or {}).items())) for r in session.execute(select(Role)).scalars().all()}


def print_role_summary(role_map):
    if not role_map:
        print("[INFO] No roles present.")
        return
    name_w = max(len(name) for name in role_map)
    print(f"{'Role'.ljust(name_w)} | Count | Modules")
    print('-' * (name_w + 40))
    for name, modules in sorted(role_map.items()):
        levels = ', '.join(f"{code}:{level}" for code, level in modules.items())
        print(f"{name.ljust(name_w)} | {str(len(modules)).rjust(5)} | {levels}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed role presets & default configuration documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_defaults.py\n  dry run: seed_defaults.py --dry-run\n  show roles: seed_defaults.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role module levels after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->modules JSON (to FILE or stdout if omitted)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM roles LIMIT 1'))
        except Exception:
            # Bootstrap schema when migrations have not been run; prefer alembic upgrade
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        finally:
            session.commit()

    with app.app_context():
        session = get_db()
        try:
            created_r = ensure_roles(session)
            created_d = ensure_documents(session)
            ensure_initial_admin(session)
            role_map = build_role_module_map(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Roles would create: {created_r}, Documents would create: {created_d}")
            else:
                session.commit()
                print(f"[DONE] Roles created: {created_r}, Documents created: {created_d}")
            if args.show_roles:
                print('\nRole Module Summary:')
                print_role_summary(role_map)
            if args.export_json is not None:
                canonical = json.dumps(role_map, sort_keys=True, separators=(',', ':'))
                payload = {
                    'roles': role_map,
                    'meta': {
                        'roles_checksum_sha256': hashlib.sha256(canonical.encode('utf-8')).hexdigest(),
                        'role_names_sorted': sorted(role_map),
                        'dry_run': args.dry_run,
                    }
                }
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f"[INFO] Exported JSON to {args.export_json}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    main()
