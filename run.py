from pickem import create_app, db
from pickem.models import Game, League, LeagueMember, Pick, Score, ScoredWeek, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "League": League,
        "LeagueMember": LeagueMember,
        "Game": Game,
        "Pick": Pick,
        "Score": Score,
        "ScoredWeek": ScoredWeek,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
