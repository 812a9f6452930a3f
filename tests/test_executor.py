from gitty.command import (
    BranchCommand,
    CheckoutCommand,
    CommitCommand,
    MergeCommand,
    RebaseCommand,
    UndoCommand,
)
from gitty.errors import ReferenceNotFoundError, StateError, ValidationError
from gitty.executor import ABANDONED, IN_PROGRESS, WON, abandon, apply_command, start_game
from gitty.models import DETACHED


def run(state, *commands):
    results = []
    for command in commands:
        state, result = apply_command(state, command)
        results.append(result)
    return results


def test_start_game_copies_puzzle_state(make_puzzle):
    puzzle = make_puzzle(files=[("main", 1), ("feature", 1)])
    state = start_game(puzzle)

    run(state, CommitCommand())

    assert len(puzzle.initial_graph.commits) == 1
    assert not puzzle.files[0].collected
    assert state.files[0].collected
    assert state.status == IN_PROGRESS


def test_single_file_on_trunk_wins_after_two_commits(make_game):
    state = make_game(files=[("main", 2)])

    first, second = run(state, CommitCommand("c1"), CommitCommand("c2"))

    assert first.success and not first.game_won
    assert first.files_collected == []
    assert second.success and second.game_won
    assert [f.id for f in second.files_collected] == ["1"]
    assert state.status == WON
    assert state.commands_used == 2


def test_commit_adds_one_commit_one_level_deeper(make_game):
    state = make_game()
    before = state.graph.current_commit()

    [result] = run(state, CommitCommand("work"))

    assert result.success
    assert len(state.graph.commits) == 2
    new_commit = state.graph.current_commit()
    assert new_commit.parent_ids == (before.id,)
    assert new_commit.depth == before.depth + 1
    assert new_commit.origin_branch == "main"
    assert state.graph.branches["main"].tip_commit_id == new_commit.id
    assert result.graph is state.graph


def test_commit_on_detached_head_moves_head_only(make_game):
    state = make_game(files=[("main", 1)])
    root_id = state.graph.root().id

    run(state, CheckoutCommand(root_id), CommitCommand())

    head = state.graph.head
    assert head.is_detached
    assert head.ref != root_id
    assert state.graph.commits[head.ref].origin_branch == DETACHED
    assert state.graph.branches["main"].tip_commit_id == root_id
    assert not state.files[0].collected


def test_branch_creates_pointer_without_moving_head(make_game):
    state = make_game()
    run(state, CommitCommand())

    [result] = run(state, BranchCommand("feature"))

    assert result.success
    assert state.graph.branches["feature"].tip_commit_id == state.graph.branches["main"].tip_commit_id
    assert state.graph.current_branch().name == "main"


def test_branch_name_must_be_declared(make_game):
    state = make_game()

    [result] = run(state, BranchCommand("release"))

    assert not result.success
    assert isinstance(result.error, ReferenceNotFoundError)
    assert "release" not in state.graph.branches
    assert state.commands_used == 0


def test_branch_cannot_be_created_twice(make_game):
    state = make_game()

    [result] = run(state, BranchCommand("main"))

    assert isinstance(result.error, ValidationError)


def test_checkout_branch_attaches_head(make_game):
    state = make_game()
    run(state, BranchCommand("feature"))

    [result] = run(state, CheckoutCommand("feature"))

    assert result.success
    assert state.graph.current_branch().name == "feature"
    assert state.checkouts_used == 1


def test_checkout_commit_prefix_detaches_head(make_game):
    state = make_game()
    run(state, CommitCommand())
    tip_id = state.graph.branches["main"].tip_commit_id

    [result] = run(state, CheckoutCommand(tip_id[:6]))

    assert result.success
    assert state.graph.head.is_detached
    assert state.graph.head.ref == tip_id


def test_checkout_unknown_target_fails_without_side_effects(make_game):
    state = make_game()

    [result] = run(state, CheckoutCommand("nonexistent-branch"))

    assert not result.success
    assert isinstance(result.error, ReferenceNotFoundError)
    assert state.commands_used == 0
    assert state.checkouts_used == 0
    assert state.command_history == []
    assert len(state.undo_stack) == 0


def test_merge_fast_forward_creates_no_commit(make_game):
    state = make_game()
    run(
        state,
        BranchCommand("feature"),
        CheckoutCommand("feature"),
        CommitCommand(),
        CommitCommand(),
        CheckoutCommand("main"),
    )
    count = len(state.graph.commits)

    [result] = run(state, MergeCommand("feature"))

    assert result.success
    assert len(state.graph.commits) == count
    assert state.graph.branches["main"].tip_commit_id == state.graph.branches["feature"].tip_commit_id
    assert result.files_collected == []


def test_merge_creates_merge_commit_for_diverged_history(make_game):
    state = make_game(files=[("main", 3)])
    run(
        state,
        BranchCommand("feature"),
        CheckoutCommand("feature"),
        CommitCommand("f1"),
        CheckoutCommand("main"),
        CommitCommand("m1"),
        CommitCommand("m2"),
    )
    main_tip = state.graph.branches["main"].tip_commit_id
    feature_tip = state.graph.branches["feature"].tip_commit_id
    count = len(state.graph.commits)

    [result] = run(state, MergeCommand("feature"))

    assert result.success
    assert len(state.graph.commits) == count + 1
    merge_commit = state.graph.current_commit()
    assert merge_commit.parent_ids == (main_tip, feature_tip)
    assert merge_commit.depth == 3
    assert [f.id for f in result.files_collected] == ["1"]
    assert result.game_won


def test_merge_requires_attached_head(make_game):
    state = make_game()
    run(state, BranchCommand("feature"), CheckoutCommand(state.graph.root().id))
    before = state.graph.copy()

    [result] = run(state, MergeCommand("feature"))

    assert not result.success
    assert isinstance(result.error, StateError)
    assert state.graph == before


def test_merge_unknown_branch(make_game):
    state = make_game()

    [result] = run(state, MergeCommand("feature"))

    assert isinstance(result.error, ReferenceNotFoundError)


def test_rebase_replays_commits_onto_target(make_game):
    state = make_game()
    run(
        state,
        BranchCommand("feature"),
        CheckoutCommand("feature"),
        CommitCommand("f1"),
        CommitCommand("f2"),
        CheckoutCommand("main"),
        CommitCommand("m1"),
        CheckoutCommand("feature"),
    )
    original_tip = state.graph.branches["feature"].tip_commit_id
    main_tip = state.graph.branches["main"].tip_commit_id
    count = len(state.graph.commits)

    [result] = run(state, RebaseCommand("main"))

    assert result.success
    assert len(state.graph.commits) == count + 2
    new_tip = state.graph.current_commit()
    assert new_tip.message == "f2"
    assert new_tip.depth == 3
    replayed_first = state.graph.commits[new_tip.parent_ids[0]]
    assert replayed_first.message == "f1"
    assert replayed_first.parent_ids == (main_tip,)
    assert original_tip in state.graph.commits
    assert original_tip not in {b.tip_commit_id for b in state.graph.branches.values()}


def test_rebase_collects_files_at_replayed_depths(make_game):
    state = make_game(files=[("feature", 2)])
    run(
        state,
        BranchCommand("feature"),
        CheckoutCommand("feature"),
        CommitCommand("f1"),
        CheckoutCommand("main"),
        CommitCommand("m1"),
        CheckoutCommand("feature"),
    )
    assert not state.files[0].collected

    [result] = run(state, RebaseCommand("main"))

    assert [f.id for f in result.files_collected] == ["1"]
    assert not result.game_won


def test_rebase_with_nothing_to_replay(make_game):
    state = make_game()
    run(state, BranchCommand("feature"), CheckoutCommand("feature"))
    count = len(state.graph.commits)

    [result] = run(state, RebaseCommand("main"))

    assert result.success
    assert result.message == "Already up to date"
    assert len(state.graph.commits) == count


def test_rebase_up_to_date_does_not_move_trunk(make_game):
    state = make_game(files=[("feature", 1)])
    run(state, BranchCommand("feature"), CheckoutCommand("feature"), CommitCommand(), CheckoutCommand("main"))
    root_id = state.graph.root().id

    [result] = run(state, RebaseCommand("feature"))

    assert result.success
    assert result.message == "Already up to date"
    assert not result.game_won
    assert state.graph.branches["main"].tip_commit_id == root_id
    assert state.status == IN_PROGRESS

    [result] = run(state, MergeCommand("feature"))

    assert result.game_won


def test_commit_on_trunk_without_merge_does_not_win(make_game):
    state = make_game(files=[("feature", 1), ("main", 1)])

    results = run(
        state,
        BranchCommand("feature"),
        CheckoutCommand("feature"),
        CommitCommand(),
        CheckoutCommand("main"),
        CommitCommand(),
    )

    assert all(r.success for r in results)
    assert state.all_files_collected()
    assert not results[-1].game_won
    assert state.status == IN_PROGRESS
    feature_tip = state.graph.branches["feature"].tip_commit_id
    assert not state.graph.is_ancestor(feature_tip, state.graph.branches["main"].tip_commit_id)

    [result] = run(state, MergeCommand("feature"))

    assert result.game_won
    assert state.status == WON
    assert state.commands_used == 6


def test_rebase_trunk_onto_feature_wins(make_game):
    state = make_game(files=[("feature", 1), ("main", 1)])
    run(
        state,
        BranchCommand("feature"),
        CheckoutCommand("feature"),
        CommitCommand(),
        CheckoutCommand("main"),
        CommitCommand(),
    )

    [result] = run(state, RebaseCommand("feature"))

    assert result.success
    assert result.game_won
    assert state.graph.is_ancestor(state.graph.branches["feature"].tip_commit_id, state.graph.current_commit().id)


def test_rebase_requires_attached_head(make_game):
    state = make_game()
    run(state, BranchCommand("feature"), CheckoutCommand(state.graph.root().id))

    [result] = run(state, RebaseCommand("feature"))

    assert isinstance(result.error, StateError)


def test_collecting_last_file_off_trunk_does_not_win(make_game):
    state = make_game(files=[("feature", 1)])

    results = run(state, BranchCommand("feature"), CheckoutCommand("feature"), CommitCommand())

    assert state.files[0].collected
    assert not results[-1].game_won
    assert state.status == IN_PROGRESS

    results = run(state, CheckoutCommand("main"), CommitCommand())

    assert not results[-1].game_won

    results = run(state, MergeCommand("feature"))

    assert results[-1].game_won
    assert state.status == WON


def test_disallowed_command_type_is_rejected(make_game):
    state = make_game(allowed_commands=("commit", "checkout", "undo"))

    [result] = run(state, BranchCommand("feature"))

    assert isinstance(result.error, ValidationError)
    assert "feature" not in state.graph.branches


def test_max_commands_quota(make_game):
    state = make_game(max_commands=2)

    results = run(state, CommitCommand(), CommitCommand(), CommitCommand())

    assert [r.success for r in results] == [True, True, False]
    assert isinstance(results[-1].error, ValidationError)
    assert state.commands_used == 2
    assert len(state.graph.commits) == 3


def test_max_checkouts_quota(make_game):
    state = make_game(max_checkouts=1)

    results = run(state, BranchCommand("feature"), CheckoutCommand("feature"), CheckoutCommand("main"))

    assert isinstance(results[-1].error, ValidationError)
    assert state.checkouts_used == 1
    assert state.graph.current_branch().name == "feature"


def test_max_commits_counts_whole_graph(make_game):
    state = make_game(max_commits=2)

    results = run(state, CommitCommand(), CommitCommand())

    assert [r.success for r in results] == [True, False]
    assert len(state.graph.commits) == 2


def test_max_consecutive_commits_resets_on_other_command(make_game):
    state = make_game(max_consecutive_commits=2)

    results = run(state, CommitCommand(), CommitCommand(), CommitCommand())
    assert [r.success for r in results] == [True, True, False]
    assert state.consecutive_commits == 2

    results = run(state, CheckoutCommand("main"), CommitCommand())
    assert [r.success for r in results] == [True, True]
    assert state.consecutive_commits == 1


def test_max_branches_quota(make_game):
    state = make_game(max_branches=1)

    [result] = run(state, BranchCommand("feature"))

    assert isinstance(result.error, ValidationError)


def test_finished_game_rejects_commands(make_game):
    state = make_game(files=[("main", 1)])
    run(state, CommitCommand())
    assert state.status == WON

    results = run(state, CommitCommand(), UndoCommand())

    assert all(isinstance(r.error, StateError) for r in results)
    assert state.commands_used == 1


def test_abandon_only_from_in_progress(make_game):
    state = make_game()

    abandon(state)

    assert state.status == ABANDONED
    [result] = run(state, CommitCommand())
    assert isinstance(result.error, StateError)


def test_every_reachable_graph_keeps_invariants(make_game):
    state = make_game(files=[("feature", 5)])
    run(
        state,
        CommitCommand(),
        BranchCommand("feature"),
        CheckoutCommand("feature"),
        CommitCommand(),
        CheckoutCommand("main"),
        CommitCommand(),
        MergeCommand("feature"),
        CheckoutCommand("feature"),
        RebaseCommand("main"),
        CheckoutCommand(state.graph.root().id),
        CommitCommand(),
    )

    state.graph.validate()
