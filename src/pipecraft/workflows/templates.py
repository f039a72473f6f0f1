#!/usr/bin/env python3
"""
PIPECRAFT TEMPLATES - Banners & Fragments
-----------------------------------------
Hand-written YAML fragments for every generated job and composite
action. Job fragments are %-formatted (GitHub's `${{ }}` expressions
stay literal) and parsed by the document adapter, comments included.
Action templates are complete action.yml files; only the change
detection one carries placeholders.

Author: Pipecraft Team
Date: 2026-01-16
"""

RULE = "=" * 77

HEADER_BANNER = f"""\
{RULE}
PIPECRAFT MANAGED WORKFLOW
{RULE}

YOU CAN CUSTOMIZE:
  - Custom jobs between the '# <--START CUSTOM JOBS-->' and '# <--END CUSTOM JOBS-->' markers
  - Test, deploy and remote-test job steps
  - Workflow name

PIPECRAFT MANAGES (do not modify):
  - Workflow triggers, job dependencies and conditionals
  - Changes detection, version calculation and tag creation
  - Tag, promote and release jobs

Running 'pipecraft generate' updates managed sections while preserving
your customizations.
{RULE}"""

CHANGES_BANNER = f"""\
{RULE}
CHANGES DETECTION (Managed by Pipecraft - do not modify)
{RULE}
Detects which domains have changed using path-based detection."""

TESTING_BANNER = f"""\
{RULE}
TESTING JOBS (Customize these with your test logic)
{RULE}
These jobs run tests for each domain when changes are detected."""

VERSION_BANNER = f"""\
{RULE}
VERSIONING (Managed by Pipecraft - do not modify)
{RULE}
Calculates the next semantic version based on conventional commits.
Only runs on push events (skipped on pull requests)."""

DEPLOY_BANNER = f"""\
{RULE}
DEPLOYMENT JOBS (Customize these with your deploy logic)
{RULE}
These jobs deploy each domain when changes are detected and tests pass."""

REMOTE_TEST_BANNER = f"""\
{RULE}
REMOTE TESTING JOBS (Customize these with your remote test logic)
{RULE}
These jobs test deployed services remotely after deployment succeeds."""

TAG_BANNER = f"""\
{RULE}
TAG & PROMOTE (Managed by Pipecraft - do not modify)
{RULE}
Creates git tags and promotes code through the branch flow."""

RUN_NAME = (
    "${{ github.event_name == 'pull_request' && !contains('%(branches)s', github.head_ref) "
    "&& github.event.pull_request.title || github.ref_name }} "
    "#${{ inputs.run_number || github.run_number }}"
    "${{ inputs.version && format(' - {0}', inputs.version) || '' }}"
)

WORKFLOW_INPUTS = {
    "version": "The version to deploy",
    "baseRef": "The base reference for comparison",
    "run_number": "The original run number from the initial branch",
    "commitSha": "The exact commit SHA to checkout and test",
}

CHECKOUT_STEP = """\
  - uses: actions/checkout@v4
    with:
      ref: ${{ inputs.commitSha || github.sha }}"""

CHANGES_JOB = """\
runs-on: %(runner)s
steps:
  - uses: actions/checkout@v4
    with:
      ref: ${{ inputs.commitSha || github.sha }}
      fetch-depth: 0
  - uses: ./.github/actions/detect-changes
    id: detect
    with:
      baseRef: ${{ inputs.baseRef || '%(base_ref)s' }}
"""

CHANGES_OUTPUT = "  %(domain)s: ${{ steps.detect.outputs.%(domain)s }}"

TEST_JOB = """\
needs: changes
if: ${{ needs.changes.outputs.%(domain)s == 'true' }}
runs-on: %(runner)s
steps:
""" + CHECKOUT_STEP + """
  # Replace with your %(domain)s test commands
  - name: Run %(domain)s tests
    run: |
      echo "Running tests for %(domain)s domain"
      # Example: npm test -- --testPathPattern=%(domain)s
"""

VERSION_JOB = """\
needs: [%(needs)s]
if: ${{ %(condition)s }}
runs-on: %(runner)s
steps:
  - uses: actions/checkout@v4
    with:
      ref: ${{ inputs.commitSha || github.sha }}
      fetch-depth: 0
  - uses: ./.github/actions/calculate-version
    id: version
    with:
      baseRef: ${{ inputs.baseRef || '%(base_ref)s' }}
      commitSha: ${{ inputs.commitSha || github.sha }}
outputs:
  version: ${{ steps.version.outputs.version }}
"""

DEPLOY_JOB = """\
needs: [version, changes]
if: ${{ always() && needs.version.result == 'success' && needs.changes.outputs.%(domain)s == 'true' }}
runs-on: %(runner)s
steps:
""" + CHECKOUT_STEP + """
  # Replace with your %(domain)s deployment commands
  - name: Deploy %(domain)s
    run: |
      echo "Deploying %(domain)s with version ${{ needs.version.outputs.version }}"
      # Example: npm run deploy:%(domain)s
"""

REMOTE_TEST_JOB = """\
needs: [deploy-%(domain)s, changes]
if: ${{ always() }}
runs-on: %(runner)s
steps:
""" + CHECKOUT_STEP + """
  # Replace with your %(domain)s remote testing commands
  - name: Test %(domain)s remotely
    if: ${{ needs.changes.outputs.%(domain)s == 'true' && needs.deploy-%(domain)s.result == 'success' }}
    run: |
      echo "Testing %(domain)s remotely"
      # Example: npm run test:remote:%(domain)s
"""

TAG_JOB = """\
if: ${{ %(condition)s }}
needs: [%(needs)s]
runs-on: %(runner)s
steps:
""" + CHECKOUT_STEP + """
  - uses: ./.github/actions/create-tag
    with:
      version: ${{ needs.version.outputs.version }}
      commitSha: ${{ inputs.commitSha || github.sha }}
"""

PROMOTE_JOB = """\
if: ${{ always() && (github.event_name == 'push' || github.event_name == 'workflow_dispatch') && needs.version.result == 'success' && needs.version.outputs.version != '' && (needs.tag.result == 'success' || needs.tag.result == 'skipped') && (%(promotable)s) }}
needs: [version, tag]
runs-on: %(runner)s
steps:
""" + CHECKOUT_STEP + """
  - uses: ./.github/actions/promote-branch
    with:
      version: ${{ needs.version.outputs.version }}
      currentBranch: ${{ github.ref_name }}
      nextBranch: ${{ %(next_branch)s }}
      runNumber: ${{ github.run_number }}
"""

RELEASE_JOB = """\
if: ${{ always() && github.ref_name == '%(final_branch)s' && needs.version.result == 'success' && needs.version.outputs.version != '' && needs.tag.result == 'success' }}
needs: [tag, version]
runs-on: %(runner)s
steps:
""" + CHECKOUT_STEP + """
  - uses: ./.github/actions/create-release
    with:
      version: ${{ needs.version.outputs.version }}
      commitSha: ${{ inputs.commitSha || github.sha }}
"""

# --- Composite actions ---------------------------------------------------

ACTION_BANNER = """\
Managed by Pipecraft: 'pipecraft generate' rewrites inputs, outputs and runs.
The name and description are yours to change."""

DETECT_CHANGES_ACTION = """\
name: Detect Changes
description: Reports which domains changed relative to the base branch
inputs:
  baseRef:
    description: Branch to compare against
    required: false
    default: main
outputs:%(outputs)s
runs:
  using: composite
  steps:
    - name: Set Base Branch
      id: set-base
      shell: bash
      run: |
        echo "base_branch=${{ inputs.baseRef }}" >> $GITHUB_OUTPUT
        echo "BASE_BRANCH=${{ inputs.baseRef }}" >> $GITHUB_ENV
    - name: Detect Changes
      uses: dorny/paths-filter@v3
      id: filter
      with:
        base: ${{ steps.set-base.outputs.base_branch }}
        filters: |
%(filters)s
    - name: Merge filter outputs
      id: merge
      shell: bash
      run: |
%(merge)s
"""

DETECT_CHANGES_OUTPUT = """\
  %(domain)s:
    description: Whether the %(domain)s domain has changes
    value: ${{ steps.merge.outputs.%(domain)s }}"""

DETECT_CHANGES_FILTER = "          %(domain)s:\n%(paths)s"
DETECT_CHANGES_PATH = "            - '%(path)s'"
DETECT_CHANGES_MERGE = \
    "        echo \"%(domain)s=${{ contains(steps.filter.outputs.changes, '%(domain)s') }}\" >> $GITHUB_OUTPUT"

CALCULATE_VERSION_ACTION = """\
name: Calculate Version
description: Calculates the next semantic version from conventional commits since the latest tag
inputs:
  baseRef:
    description: Branch the version is calculated against
    required: false
    default: main
  commitSha:
    description: Commit to calculate the version for
    required: false
    default: ''
outputs:
  version:
    description: The next version with its 'v' prefix, empty when nothing changed
    value: ${{ steps.calc.outputs.version }}
  versionType:
    description: The bump applied to the latest tag (major, minor, patch or none)
    value: ${{ steps.calc.outputs.versionType }}
  previousVersion:
    description: The latest existing tag
    value: ${{ steps.calc.outputs.previousVersion }}
runs:
  using: composite
  steps:
    - name: Calculate next version
      id: calc
      shell: bash
      run: |
        git fetch --tags --force > /dev/null 2>&1 || true
        TARGET="${{ inputs.commitSha || 'HEAD' }}"
        LATEST=$(git describe --tags --abbrev=0 --match 'v*' "$TARGET" 2>/dev/null || echo "v0.0.0")
        echo "previousVersion=$LATEST" >> $GITHUB_OUTPUT
        if [ "$LATEST" = "v0.0.0" ]; then
          LOG=$(git log "$TARGET" --pretty=format:'%s%n%b')
        else
          LOG=$(git log "$LATEST..$TARGET" --pretty=format:'%s%n%b')
        fi
        if [ -z "$LOG" ]; then
          echo "No commits since $LATEST"
          echo "version=" >> $GITHUB_OUTPUT
          echo "versionType=none" >> $GITHUB_OUTPUT
          exit 0
        fi
        IFS='.' read -r MAJOR MINOR PATCH <<< "${LATEST#v}"
        if echo "$LOG" | grep -qE '^BREAKING CHANGE|^[a-z]+(\\(.+\\))?!:'; then
          MAJOR=$((MAJOR + 1)); MINOR=0; PATCH=0; TYPE=major
        elif echo "$LOG" | grep -qE '^feat(\\(.+\\))?:'; then
          MINOR=$((MINOR + 1)); PATCH=0; TYPE=minor
        else
          PATCH=$((PATCH + 1)); TYPE=patch
        fi
        echo "version=v$MAJOR.$MINOR.$PATCH" >> $GITHUB_OUTPUT
        echo "versionType=$TYPE" >> $GITHUB_OUTPUT
        echo "Next version: v$MAJOR.$MINOR.$PATCH ($TYPE)"
"""

CREATE_TAG_ACTION = """\
name: Create Tag
description: Creates and pushes an annotated git tag for a version
inputs:
  version:
    description: Version to tag (a missing 'v' prefix is added)
    required: true
  commitSha:
    description: Commit to tag
    required: false
    default: ''
  push:
    description: Whether to push the tag to origin
    required: false
    default: 'true'
outputs:
  tag_name:
    description: The created tag
    value: ${{ steps.tag.outputs.tag_name }}
  success:
    description: Whether the tag was created
    value: ${{ steps.tag.outputs.success }}
runs:
  using: composite
  steps:
    - name: Validate Inputs
      shell: bash
      run: |
        if [ -z "${{ inputs.version }}" ]; then
          echo "::error::version input is required"
          exit 1
        fi
    - name: Configure Git
      shell: bash
      run: |
        git config user.name "github-actions[bot]"
        git config user.email "github-actions[bot]@users.noreply.github.com"
    - name: Create Tag
      id: tag
      shell: bash
      run: |
        TAG="${{ inputs.version }}"
        case "$TAG" in v*) ;; *) TAG="v$TAG" ;; esac
        COMMIT="${{ inputs.commitSha || github.sha }}"
        if git rev-parse -q --verify "refs/tags/$TAG" > /dev/null; then
          echo "Tag $TAG already exists"
          echo "success=false" >> $GITHUB_OUTPUT
        else
          git tag -a "$TAG" "$COMMIT" -m "Release $TAG"
          echo "success=true" >> $GITHUB_OUTPUT
        fi
        echo "tag_name=$TAG" >> $GITHUB_OUTPUT
    - name: Push Tag
      if: ${{ inputs.push == 'true' && steps.tag.outputs.success == 'true' }}
      shell: bash
      run: git push origin "${{ steps.tag.outputs.tag_name }}"
    - name: Action Summary
      shell: bash
      run: |
        echo "### Tag ${{ steps.tag.outputs.tag_name }}" >> $GITHUB_STEP_SUMMARY
        echo "Created: ${{ steps.tag.outputs.success }}" >> $GITHUB_STEP_SUMMARY
"""

PROMOTE_BRANCH_ACTION = """\
name: Promote Branch
description: Opens a pull request promoting a version to the next branch in the flow
inputs:
  version:
    description: Version being promoted
    required: true
  currentBranch:
    description: Branch the version was built on
    required: true
  nextBranch:
    description: Branch to promote to; nothing happens when empty
    required: false
    default: ''
  runNumber:
    description: Run number of the originating workflow run
    required: false
    default: ''
  autoMerge:
    description: Whether to enable auto-merge on the pull request
    required: false
    default: 'false'
  tempBranchPattern:
    description: Name of the promotion branch
    required: false
    default: release/{source}-to-{target}-{version}
  token:
    description: Token used for pushing and the GitHub CLI
    required: false
    default: ${{ github.token }}
outputs:
  prNumber:
    description: Number of the promotion pull request
    value: ${{ steps.pr.outputs.number || steps.existing.outputs.number }}
  prUrl:
    description: URL of the promotion pull request
    value: ${{ steps.pr.outputs.url || steps.existing.outputs.url }}
  tempBranch:
    description: Branch the pull request was opened from
    value: ${{ steps.branch.outputs.name }}
runs:
  using: composite
  steps:
    - name: Create promotion branch
      id: branch
      if: ${{ inputs.nextBranch != '' }}
      shell: bash
      env:
        PATTERN: ${{ inputs.tempBranchPattern }}
      run: |
        NAME="${PATTERN//\\{source\\}/${{ inputs.currentBranch }}}"
        NAME="${NAME//\\{target\\}/${{ inputs.nextBranch }}}"
        NAME="${NAME//\\{version\\}/${{ inputs.version }}}"
        git checkout -B "$NAME"
        git push --force origin "$NAME"
        echo "name=$NAME" >> $GITHUB_OUTPUT
    - name: Check for existing pull request
      id: existing
      if: ${{ inputs.nextBranch != '' }}
      shell: bash
      env:
        GH_TOKEN: ${{ inputs.token }}
      run: |
        NUMBER=$(gh pr list --head "${{ steps.branch.outputs.name }}" --base "${{ inputs.nextBranch }}" --json number --jq '.[0].number')
        if [ -n "$NUMBER" ]; then
          echo "number=$NUMBER" >> $GITHUB_OUTPUT
          echo "url=$(gh pr view "$NUMBER" --json url --jq .url)" >> $GITHUB_OUTPUT
        fi
    - name: Create pull request
      id: pr
      if: ${{ inputs.nextBranch != '' && steps.existing.outputs.number == '' }}
      shell: bash
      env:
        GH_TOKEN: ${{ inputs.token }}
      run: |
        URL=$(gh pr create --head "${{ steps.branch.outputs.name }}" --base "${{ inputs.nextBranch }}" \\
          --title "Release ${{ inputs.version }} to ${{ inputs.nextBranch }}" \\
          --body "Promotes ${{ inputs.version }} from ${{ inputs.currentBranch }} (run #${{ inputs.runNumber }}).")
        echo "url=$URL" >> $GITHUB_OUTPUT
        echo "number=${URL##*/}" >> $GITHUB_OUTPUT
    - name: Enable auto-merge
      if: ${{ inputs.nextBranch != '' && inputs.autoMerge == 'true' }}
      shell: bash
      env:
        GH_TOKEN: ${{ inputs.token }}
      run: gh pr merge "${{ steps.pr.outputs.number || steps.existing.outputs.number }}" --auto --merge
"""

CREATE_RELEASE_ACTION = """\
name: Create Release
description: Publishes a GitHub release for a version tag
inputs:
  version:
    description: Version to release (a missing 'v' prefix is added)
    required: true
  commitSha:
    description: Commit the release points at
    required: false
    default: ''
  token:
    description: Token used by the GitHub CLI
    required: false
    default: ${{ github.token }}
outputs:
  release_url:
    description: URL of the created release
    value: ${{ steps.release.outputs.release_url }}
  release_id:
    description: Tag name identifying the release
    value: ${{ steps.release.outputs.release_id }}
runs:
  using: composite
  steps:
    - name: Create GitHub Release
      id: release
      shell: bash
      env:
        GH_TOKEN: ${{ inputs.token }}
      run: |
        TAG="${{ inputs.version }}"
        case "$TAG" in v*) ;; *) TAG="v$TAG" ;; esac
        PREVIOUS=$(git describe --tags --abbrev=0 "$TAG^" 2>/dev/null || true)
        if [ -n "$PREVIOUS" ]; then
          NOTES=$(git log "$PREVIOUS..$TAG" --pretty=format:'- %s')
        else
          NOTES=$(git log "$TAG" --pretty=format:'- %s')
        fi
        URL=$(gh release create "$TAG" --title "Release $TAG" --notes "$NOTES" --target "${{ inputs.commitSha || github.sha }}")
        echo "release_url=$URL" >> $GITHUB_OUTPUT
        echo "release_id=$TAG" >> $GITHUB_OUTPUT
"""
