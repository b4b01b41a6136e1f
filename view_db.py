import click
from flask.cli import with_appcontext
from models import User, Todo


@click.command('view-db')
@with_appcontext
def view_db_command():
    """列出資料庫內容 (使用者與任務)"""
    click.echo("\n" + "=" * 60)
    click.echo("資料庫內容")
    click.echo("=" * 60)

    # 使用者
    users = User.query.order_by(User.id).all()
    click.echo(f"\n【使用者】共 {len(users)} 筆:")
    for u in users:
        click.echo(f"  ID: {u.id}, Email: {u.email}, Name: {u.name}")

    # 任務
    todos = Todo.query.order_by(Todo.user_id, Todo.created_at.desc()).all()
    click.echo(f"\n【任務】共 {len(todos)} 筆:")
    for t in todos:
        status = 'done' if t.is_completed else 'todo'
        click.echo(f"  ID: {t.id}, Owner: {t.owner.email}, Title: {t.title}, Status: {status}")

    click.echo("\n" + "=" * 60)
